import io

from simple_crawler.crawler.listener import LinkStorageListener
from simple_crawler.storage import ConsoleLinkStorage, FileLinkStorage


def test_console_storage_prints_new_links():
    stream = io.StringIO()
    storage = ConsoleLinkStorage(max_link_count=10, stream=stream)

    assert storage.try_add("https://www.example.com/a")
    assert storage.try_add("https://www.example.com/b")

    assert stream.getvalue().splitlines() == ["https://www.example.com/a", "https://www.example.com/b"]
    assert storage.link_count == 2


def test_duplicate_links_are_refused():
    stream = io.StringIO()
    storage = ConsoleLinkStorage(max_link_count=10, stream=stream)

    assert storage.try_add("https://www.example.com/a")
    assert not storage.try_add("https://www.example.com/a")

    assert storage.link_count == 1
    assert stream.getvalue().count("https://www.example.com/a") == 1


def test_storage_refuses_links_once_full():
    storage = ConsoleLinkStorage(max_link_count=2, stream=io.StringIO())

    assert storage.try_add("https://www.example.com/1")
    assert storage.try_add("https://www.example.com/2")
    assert storage.is_full
    assert not storage.try_add("https://www.example.com/3")

    assert storage.link_count == 2


def test_file_storage_appends_lines(tmp_path):
    target = tmp_path / "out" / "links.txt"
    target.parent.mkdir()
    target.write_text("https://www.example.com/old\n", encoding="utf-8")

    storage = FileLinkStorage(target, max_link_count=10)
    storage.try_add("https://www.example.com/new")
    storage.try_add("https://www.example.com/new")
    storage.close()

    assert target.read_text(encoding="utf-8").splitlines() == [
        "https://www.example.com/old",
        "https://www.example.com/new",
    ]


def test_file_storage_creates_parent_directory(tmp_path):
    target = tmp_path / "nested" / "dir" / "links.txt"

    storage = FileLinkStorage(target)
    storage.try_add("https://www.example.com/")
    storage.close()

    assert target.exists()


def test_storage_listener_admits_only_new_links():
    storage = ConsoleLinkStorage(max_link_count=10, stream=io.StringIO())
    listener = LinkStorageListener(storage)

    assert listener.on_link_discovered("https://www.example.com/a", 2, "a")
    assert not listener.on_link_discovered("https://www.example.com/a", 3, "a again")
