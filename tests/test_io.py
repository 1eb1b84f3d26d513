import json

from allure_watcher import Attachment, ResultsWriter, Status, SuiteReport, TestReport, atomic_write_json
from allure_watcher.utilities import _compact_json, _dump_json, _is_empty, _slugify


def test_atomic_write_json_creates_parents(tmp_path):
    target = tmp_path / "nested" / "data.json"
    atomic_write_json(target, {"a": 1})
    assert json.loads(target.read_text()) == {"a": 1}
    assert [p.name for p in target.parent.iterdir()] == ["data.json"]


def test_writer_writes_attachments_then_suite(tmp_path):
    suite = SuiteReport(name="login page")
    tc = suite.add_test(TestReport(name="logs in"))
    st = tc.add_step("GET /wd/hub/session/1/screenshot")
    png = b"\x89PNG\r\n\x1a\n"
    st.attach(Attachment(name="Screenshot", content=png))
    tc.attach(Attachment(name="Response", content=b"{}", mime_type="application/json"))
    st.close(Status.PASSED)
    tc.close(Status.PASSED)
    suite.close()

    writer = ResultsWriter(tmp_path / "results")
    path = writer.write_suite(suite)
    assert path.name.endswith("-testsuite.json")

    shot = st.attachments[0]
    assert shot.source.endswith("-screenshot-attachment.png")
    assert (writer.output_dir / shot.source).read_bytes() == png
    assert tc.attachments[0].source.endswith(".json")

    data = json.loads(path.read_text())
    assert data["test_cases"][0]["steps"][0]["attachments"][0]["source"] == shot.source


def test_attachment_written_once(tmp_path):
    writer = ResultsWriter(tmp_path)
    att = Attachment(name="log", content=b"x", mime_type="text/plain")
    first = writer.write_attachment(att)
    assert writer.write_attachment(att) == first
    assert len(list(tmp_path.iterdir())) == 1


def test_json_helpers():
    assert _dump_json({"a": 1}) == '{\n    "a": 1\n}'
    assert _compact_json({"browserName": "chrome"}) == '{"browserName":"chrome"}'
    assert _is_empty(None) and _is_empty({}) and _is_empty("")
    assert not _is_empty({"url": "x"}) and not _is_empty(0)
    assert _slugify("  Login Page (v2)! ") == "login-page-v2"
