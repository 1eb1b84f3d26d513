from allure_watcher import EventDispatcher


def test_emit_calls_handler_synchronously_in_order():
    seen = []
    d = EventDispatcher()
    d.on("suite:start", lambda p: seen.append(("suite", p["title"])))
    d.on("test:start", lambda p: seen.append(("test", p["title"])))
    d.emit("suite:start", {"cid": "0-0", "title": "s"})
    d.emit("test:start", {"cid": "0-0", "title": "t"})
    d.emit("suite:start", {"cid": "0-0", "title": "s2"})
    assert seen == [("suite", "s"), ("test", "t"), ("suite", "s2")]


def test_last_registration_wins():
    d = EventDispatcher()
    d.on("end", lambda p: "first")
    d.on("end", lambda p: "second")
    assert d.emit("end", {}) == "second"


def test_unhandled_kind_is_dropped():
    d = EventDispatcher()
    assert not d.handles("runner:start")
    assert d.emit("runner:start", {"cid": "0-0"}) is None


def test_missing_payload_becomes_empty_mapping():
    seen = []
    d = EventDispatcher()
    d.on("end", seen.append)
    d.emit("end")
    assert seen == [{}]
