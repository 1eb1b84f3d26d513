from allure_watcher import AllureReporter, ReportState, StepReport, TestReport, Status

CID = "0-0"


def make_reporter(tmp_path, **options) -> AllureReporter:
    return AllureReporter({"outputDir": str(tmp_path / "allure-results"), **options})


def command(path: str, method: str = "POST", data=None, cid=CID) -> dict:
    return {"cid": cid, "method": method, "uri": {"path": path}, "data": data}


def result(path: str, method: str | None = "POST", body=None, cid=CID) -> dict:
    return {
        "cid": cid,
        "requestOptions": {"method": method, "uri": {"path": path}},
        "body": body if body is not None else {"status": 0},
        "uri": {"path": path},
    }


def start_test(reporter: AllureReporter, title: str = "logs in", cid=CID, suite: str | None = "login page"):
    if suite is not None:
        reporter.emit("suite:start", {"cid": cid, "title": suite})
    reporter.emit("test:start", {
        "cid": cid,
        "title": title,
        "runner": {cid: {"browserName": "chrome"}},
        "specs": ["/specs/login.spec.js"],
    })
    return reporter.state_for(cid).current_test


def open_steps(state: ReportState, *names: str) -> list[StepReport]:
    return [state.start_step(n) for n in names]


def stack_names(state: ReportState) -> list[str]:
    return [s.name for s in state.steps]


def stack_is_simple_path(state: ReportState) -> bool:
    """Every open step is owned by the one below it; the bottom by the test."""
    owner = state.current_test
    for st in state.steps:
        assert st.parent is owner
        assert not st.closed
        owner = st
    return True


def no_pending_steps(tc: TestReport) -> bool:
    for st in tc.iter_steps():
        assert st.closed
        assert st.status is not Status.PENDING
    return True
