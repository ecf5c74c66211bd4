import pytest

from perfanno.annotate import Annotation, OutputType
from perfanno.callgraph import NodeKey
from perfanno.errors import FileUnreadable, MalformedFrame, UnknownEvent
from perfanno.highlight import Highlight, Highlighter
from perfanno.session import Session, SymbolResult
from perfanno.traces import SYMBOL_FILE, Trace, Unresolved, parse, parse_frame

from conftest import TRACES


class TestLoad:
    def test_load(self, session, traces_path):
        assert not session.is_loaded()
        assert session.load(str(traces_path)) == 157
        assert session.is_loaded()
        assert session.list_events() == ["cycles", "cache-misses"]
        assert session.event == "cycles"
        assert session.callgraph("cycles").total_count == 150
        assert session.callgraph("cache-misses").total_count == 7

    def test_reload_is_identical(self, session, traces_path):
        session.load(str(traces_path))
        first = dict(session.callgraphs)
        session.load(str(traces_path))
        assert session.callgraphs == first
        # but not the same objects
        assert session.callgraphs["cycles"] is not first["cycles"]

    def test_reload_resets_selection(self, session, traces_path):
        session.load(str(traces_path))
        session.select_event("cache-misses")
        session.load_traces(parse("# Samples: 1 of event 'cycles'\n1 main /a.c:1\n"))
        assert session.event == "cycles"
        assert session.list_events() == ["cycles"]

    def test_unreadable_keeps_state(self, session, traces_path, tmp_path):
        session.load(str(traces_path))
        session.select_event("cache-misses")
        with pytest.raises(FileUnreadable):
            session.load(str(tmp_path / "missing.out"))
        assert session.is_loaded()
        assert session.event == "cache-misses"
        assert session.list_events() == ["cycles", "cache-misses"]

    def test_malformed_keeps_state(self, session, traces_path):
        session.load(str(traces_path))
        with pytest.raises(MalformedFrame):
            session.load_traces(
                {"cycles": [Trace(1, [parse_frame("main /a.c:1"), Unresolved("")])]}
            )
        assert session.list_events() == ["cycles", "cache-misses"]

    def test_invalid_utf8(self, session, tmp_path):
        path = tmp_path / "perf.out"
        path.write_bytes(b"# Samples: 2 of event 'cycles'\n1 main /a.c:10;\xff\xfesym\n")
        assert session.load(str(path)) == 1
        assert session.callgraph()[NodeKey("/a.c", 10)].count == 1

    def test_empty_file(self, session, tmp_path):
        path = tmp_path / "empty.out"
        path.write_text("")
        assert session.load(str(path)) == 0
        assert session.is_loaded()
        assert session.list_events() == []
        with pytest.raises(UnknownEvent):
            session.render_all()


class TestEvents:
    def test_select(self, session, traces_path):
        session.load(str(traces_path))
        session.select_event("cache-misses")
        assert session.event == "cache-misses"
        assert session.callgraph().total_count == 7

    def test_select_unknown(self, session, traces_path):
        session.load(str(traces_path))
        with pytest.raises(UnknownEvent) as e:
            session.select_event("instructions")
        assert "instructions" in str(e.value)
        assert session.event == "cycles"

    def test_nothing_loaded(self, session):
        with pytest.raises(UnknownEvent):
            session.select_event("cycles")
        with pytest.raises(UnknownEvent):
            session.render_all()


class TestConfig:
    def test_defaults(self, session):
        assert session.get_config("eventOutputType") is OutputType.PERCENTAGE
        assert session.get_config("localRelative") is False
        assert session.get_config("highlightColor") == (255, 0, 0)
        assert session.get_config("minimumThreshold") == 0.0

    def test_set(self, session):
        session.set_config("eventOutputType", "count")
        session.set_config("highlightColor", "#00ff80")
        session.set_config("minimumThreshold", "0.5")
        assert session.get_config("eventOutputType") is OutputType.COUNT
        assert session.get_config("highlightColor") == (0, 255, 128)
        assert session.get_config("minimumThreshold") == 0.5

    def test_unknown_keys_are_stored(self, session):
        session.set_config("fancy", [1, 2])
        assert session.get_config("fancy") == [1, 2]
        assert session.get_config("missing") is None

    def test_bad_value_keeps_old(self, session):
        with pytest.raises(ValueError):
            session.set_config("minimumThreshold", 1.0)
        assert session.get_config("minimumThreshold") == 0.0

    def test_update_is_all_or_nothing(self, session):
        with pytest.raises(ValueError):
            session.update_config({"localRelative": True, "highlightColor": "red"})
        assert session.get_config("localRelative") is False

    def test_constructor_config(self):
        session = Session(config={"eventOutputType": "percentage and count"})
        assert session.get_config("eventOutputType") is OutputType.PERCENTAGE_AND_COUNT


class TestRender:
    def test_render_all(self, session, traces_path):
        session.load(str(traces_path))
        rendered = session.render_all()
        assert rendered == [
            Annotation("/a.c", 10, "100.00%", 1.0),
            Annotation("/a.c", 20, "66.67%", 100 / 150),
            Annotation("/b.c", 5, "33.33%", 50 / 150),
        ]
        assert session.renderer["/a.c"] == [
            Highlight(9, "100.00%", (255, 0, 0), 1.0),
            Highlight(19, "66.67%", (255, 0, 0), 100 / 150),
        ]
        # unresolved frames are never rendered
        assert SYMBOL_FILE not in session.renderer
        assert len(session.renderer) == 3

    def test_render_selected_event(self, session, traces_path):
        session.load(str(traces_path))
        session.select_event("cache-misses")
        session.set_config("eventOutputType", "count")
        assert [a.text for a in session.render_all()] == ["7/7", "7/7"]

    def test_threshold(self, session, traces_path):
        session.load(str(traces_path))
        session.set_config("minimumThreshold", 0.5)
        assert [(a.file, a.line) for a in session.render_all()] == [
            ("/a.c", 10),
            ("/a.c", 20),
        ]

    def test_local_relative(self, session, traces_path):
        session.load(str(traces_path))
        session.set_config("localRelative", True)
        session.set_config("eventOutputType", "percentage_and_count")
        texts = {(a.file, a.line): a.text for a in session.render_all()}
        assert texts[("/a.c", 20)] == "66.67% (100/150)"
        assert texts[("/b.c", 5)] == "33.33% (50/150)"

    def test_color(self, session, traces_path):
        session.load(str(traces_path))
        session.set_config("highlightColor", (0, 0, 255))
        session.render_all()
        assert {h.color for _, h in session.renderer} == {(0, 0, 255)}

    def test_clear(self, session, traces_path):
        session.load(str(traces_path))
        session.render_all()
        session.clear()
        assert len(session.renderer) == 0

    def test_reannotate(self, session, traces_path):
        session.load(str(traces_path))
        session.render_all()
        session.reannotate()
        assert len(session.renderer) == 3

    def test_custom_renderer(self, traces_path):
        calls = []

        class Renderer:
            def highlight(self, path, line, **opts):
                calls.append((path, line, opts["text"]))

            def clear(self):
                calls.clear()

        session = Session(renderer=Renderer())
        session.load(str(traces_path))
        session.render_all()
        assert calls[0] == ("/a.c", 9, "100.00%")
        session.clear()
        assert calls == []

    def test_line_zero_never_rendered(self, session):
        session.load_traces(
            parse("# Samples: 1 of event 'cycles'\n9 main /a.c:0;foo /a.c:3\n")
        )
        assert NodeKey(SYMBOL_FILE, "main") in session.callgraph()
        assert [(a.file, a.line) for a in session.render_all()] == [("/a.c", 3)]

    def test_annotations_for_one_file(self, session, traces_path):
        session.load(str(traces_path))
        assert [a.line for a in session.annotations("/a.c")] == [10, 20]
        assert session.annotations("/nope.c") == []


class TestQueries:
    def test_callers_callees(self, session, traces_path):
        session.load(str(traces_path))
        assert session.callees("/a.c", 10) == [
            (NodeKey("/a.c", 20), 100),
            (NodeKey("/b.c", 5), 50),
        ]
        assert session.callers("/b.c", 5) == [(NodeKey("/a.c", 10), 50)]
        assert session.callers("/a.c", 10) == []
        assert session.callers("/nope.c", 1) == []

    def test_symbols(self, session, traces_path):
        session.load(str(traces_path))
        assert session.symbols() == [
            SymbolResult("/a.c", "main", 150, 10, 10),
            SymbolResult("/a.c", "foo", 100, 20, 20),
            SymbolResult("/b.c", "bar", 50, 5, 5),
        ]
        assert session.symbols("cache-misses")[0] == SymbolResult("/a.c", "foo", 7, 20, 20)

    def test_symbol_location(self, session, traces_path):
        session.load(str(traces_path))
        assert session.symbol_location("bar") == ("/b.c", 5)
        assert session.symbol_location("nope") is None
