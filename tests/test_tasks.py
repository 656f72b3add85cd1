"""Tests for the task graph"""

import pytest

from blogpipe.config import ConfigError
from blogpipe.tasks import CSS_RELOAD, BuildTask, TaskRegistry, declare_tasks


def recorder(calls, name, result=True):
    def run():
        calls.append(name)
        return result
    return run


def test_resolve_orders_prerequisites_first():
    registry = TaskRegistry([
        BuildTask("c", requires=("a", "b")),
        BuildTask("a"),
        BuildTask("b", requires=("a",)),
    ])
    assert [task.name for task in registry.resolve(["c"])] == ["a", "b", "c"]


def test_shared_prerequisite_runs_once():
    calls = []
    registry = TaskRegistry([
        BuildTask("base", recorder(calls, "base")),
        BuildTask("x", recorder(calls, "x"), requires=("base",)),
        BuildTask("y", recorder(calls, "y"), requires=("base",)),
    ])
    assert registry.run(["x", "y"])
    assert calls == ["base", "x", "y"]


def test_cycle_is_a_config_error():
    registry = TaskRegistry([BuildTask("a", requires=("b",)), BuildTask("b", requires=("a",))])
    with pytest.raises(ConfigError, match="cycle"):
        registry.resolve(["a"])


def test_unknown_requirement_fails_validation():
    registry = TaskRegistry([BuildTask("a", requires=("missing",))])
    with pytest.raises(ConfigError):
        registry.validate()


def test_duplicate_task_is_rejected():
    registry = TaskRegistry([BuildTask("a")])
    with pytest.raises(ConfigError):
        registry.add(BuildTask("a"))


def test_failure_stops_the_chain(capsys):
    """A failed task skips everything that was ordered after it."""
    calls = []
    registry = TaskRegistry([
        BuildTask("first", recorder(calls, "first", result=False)),
        BuildTask("second", recorder(calls, "second"), requires=("first",)),
    ])
    assert registry.run(["second"]) is False
    assert calls == ["first"]
    assert "second" in capsys.readouterr().err


def test_exception_counts_as_failure(capsys):
    def boom():
        raise RuntimeError("boom")

    registry = TaskRegistry([BuildTask("bad", boom)])
    assert registry.run(["bad"]) is False
    assert "boom" in capsys.readouterr().err


class FakeBuilder:
    def __init__(self, ok=True):
        self.ok = ok
        self.calls = 0

    def run(self):
        self.calls += 1
        return self.ok


def test_declared_task_graph(make_settings):
    registry = declare_tasks(make_settings(), builder=FakeBuilder())
    assert set(registry.names()) == {
        "style", "script", "images", "preview-images", "build", "rebuild", "assets", "default",
    }
    order = [task.name for task in registry.resolve(["default"])]
    assert order[-1] == "default"
    assert order.index("build") > order.index("assets")
    assert registry.get("style").reload == CSS_RELOAD


def test_rebuild_runs_the_site_builder(make_settings):
    builder = FakeBuilder()
    registry = declare_tasks(make_settings(), builder=builder)
    assert registry.run(["rebuild"])
    assert builder.calls == 1


def test_failed_build_fails_default(make_settings):
    registry = declare_tasks(make_settings(), builder=FakeBuilder(ok=False))
    assert registry.run(["default"]) is False


def test_compiler_tasks_record_sources_and_destinations(project, make_settings):
    settings = make_settings()
    registry = declare_tasks(settings, builder=FakeBuilder())
    style = registry.get("style")
    assert style.sources == ("src/css/**/*.css",)
    assert style.destinations == (project / "_site" / "assets" / "css", project / "assets" / "css")
    assert registry.get("preview-images").sources == ("src/images/**/preview.{jpg,jpeg,png,gif,ico}",)
    assert registry.get("build").destinations == (project / "_site",)
    assert project / "assets" / "js" in registry.destinations()
