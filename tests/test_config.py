import logging

import pytest

import defunc
from defunc import LoggingSink, TraceConfig, TraceContext, Traced, use_context


def test_defaults():
    cfg = TraceConfig()
    assert cfg.trace_all is False
    assert cfg.stale_threshold == 120.0
    assert cfg.indent_step == 2
    assert cfg.thread_local_depth is True


def test_from_env_parses_known_variables():
    cfg = TraceConfig.from_env(
        {
            "DEFUNC_TRACE_ALL": "yes",
            "DEFUNC_STALE_THRESHOLD": "5.5",
            "DEFUNC_INDENT_STEP": "4",
            "DEFUNC_QUALIFIED_NAMES": "0",
            "UNRELATED": "x",
        }
    )
    assert cfg == TraceConfig(trace_all=True, stale_threshold=5.5, indent_step=4)


def test_from_env_rejects_bad_values():
    with pytest.raises(ValueError, match="DEFUNC_TRACE_ALL"):
        TraceConfig.from_env({"DEFUNC_TRACE_ALL": "maybe"})
    with pytest.raises(ValueError, match="DEFUNC_STALE_THRESHOLD"):
        TraceConfig.from_env({"DEFUNC_STALE_THRESHOLD": "soon"})
    with pytest.raises(ValueError, match="positive"):
        TraceConfig.from_env({"DEFUNC_INDENT_STEP": "0"})


def test_updated_rejects_unknown_fields():
    with pytest.raises(TypeError, match="unknown config field"):
        TraceConfig().updated(colour=True)


def test_configure_changes_the_active_context_only():
    ctx = TraceContext()
    with use_context(ctx):
        defunc.configure(trace_all=True)
        assert defunc.get_context().config.trace_all is True
    assert ctx.config.trace_all is True
    assert defunc.get_context() is not ctx


def test_capture_restores_previous_context(clock):
    before = defunc.get_context()
    with defunc.capture(clock=clock) as out:
        assert defunc.get_context() is not before
        assert defunc.get_context().sink is out
    assert defunc.get_context() is before


def test_logging_sink_routes_lines_to_logger(caplog):
    ctx = TraceContext(sink=LoggingSink(logging.getLogger("defunc.test")))
    with use_context(ctx), caplog.at_level(logging.INFO, logger="defunc.test"):

        class Random(Traced, watch_static=["random"]):
            @staticmethod
            def random():
                return 5

        Random.random()

    assert [r.getMessage() for r in caplog.records if r.name == "defunc.test"] == [
        "enter random: []",
        "exit random: 5 (object count has changed by +0)",
    ]


def test_stream_sink_defaults_to_stdout(capsys):
    ctx = TraceContext()
    with use_context(ctx):

        class Random(Traced, watch_static=["random"]):
            @staticmethod
            def random():
                return 5

        Random.random()

    assert capsys.readouterr().out == (
        "enter random: []\nexit random: 5 (object count has changed by +0)\n"
    )


def test_default_context_is_built_once_at_import():
    from defunc.tracing import context

    assert isinstance(context._active_context, TraceContext)
    assert defunc.get_context() is context._active_context
    assert defunc.get_context() is defunc.get_context()
