from __future__ import annotations

from pathlib import Path

import networkx as nx
import pytest

from changed_functions.analyzers.reference_graph_builder import (
    ReferenceGraph,
    ReferenceGraphBuilder,
)
from changed_functions.errors import ConfigurationError


def test_reference_graph_dependents_and_membership() -> None:
    graph = ReferenceGraph({"/r/util.ts": ["/r/a.ts", "/r/b.ts"], "/r/a.ts": []})

    assert graph.dependents("/r/util.ts") == ("/r/a.ts", "/r/b.ts")
    assert graph.dependents("/r/a.ts") == ()
    assert graph.dependents("/r/missing.ts") == ()
    assert "/r/util.ts" in graph
    assert "/r/b.ts" not in graph
    assert len(graph) == 2
    assert set(graph.edges()) == {("/r/a.ts", "/r/util.ts"), ("/r/b.ts", "/r/util.ts")}
    assert graph.as_dict() == {
        "/r/util.ts": frozenset({"/r/a.ts", "/r/b.ts"}),
        "/r/a.ts": frozenset(),
    }


def test_reference_graph_is_frozen() -> None:
    graph = ReferenceGraph({"/r/util.ts": ["/r/a.ts"]})

    assert nx.is_frozen(graph.graph)
    with pytest.raises(nx.NetworkXError, match="Frozen"):
        graph.graph.add_edge("/r/x.ts", "/r/util.ts")


def test_build_passes_glob_matches_to_the_source(tmp_path: Path, static_source) -> None:
    (tmp_path / "functions").mkdir()
    (tmp_path / "functions" / "b.function.ts").write_text("", encoding="utf-8")
    (tmp_path / "functions" / "a.function.ts").write_text("", encoding="utf-8")
    (tmp_path / "functions" / "notes.md").write_text("", encoding="utf-8")
    source = static_source({})

    ReferenceGraphBuilder(source).build("./functions/*.ts", str(tmp_path))

    assert source.calls == [
        (
            [
                str(tmp_path / "functions" / "a.function.ts"),
                str(tmp_path / "functions" / "b.function.ts"),
            ],
            str(tmp_path),
        )
    ]


def test_recursive_glob(tmp_path: Path) -> None:
    nested = tmp_path / "src" / "functions" / "billing"
    nested.mkdir(parents=True)
    (nested / "charge.ts").write_text("", encoding="utf-8")

    files = ReferenceGraphBuilder().find_candidate_files("src/**/*.ts", str(tmp_path))

    assert files == [str(nested / "charge.ts")]


def test_brace_glob_expands_every_alternative(tmp_path: Path) -> None:
    (tmp_path / "functions").mkdir()
    for name in ("a.function.ts", "b.function.js", "c.md"):
        (tmp_path / "functions" / name).write_text("", encoding="utf-8")

    files = ReferenceGraphBuilder().find_candidate_files("functions/*.{ts,js}", str(tmp_path))

    assert files == [
        str(tmp_path / "functions" / "a.function.ts"),
        str(tmp_path / "functions" / "b.function.js"),
    ]


def test_glob_skips_directories_and_dotfiles(tmp_path: Path) -> None:
    (tmp_path / "functions" / "dir.ts").mkdir(parents=True)
    (tmp_path / "functions" / ".hidden.ts").write_text("", encoding="utf-8")
    (tmp_path / "functions" / "a.ts").write_text("", encoding="utf-8")

    files = ReferenceGraphBuilder().find_candidate_files("functions/*.ts", str(tmp_path))

    assert files == [str(tmp_path / "functions" / "a.ts")]


def test_absolute_glob_is_resolved_against_the_root(tmp_path: Path) -> None:
    (tmp_path / "functions").mkdir()
    (tmp_path / "functions" / "a.ts").write_text("", encoding="utf-8")

    files = ReferenceGraphBuilder().find_candidate_files(f"{tmp_path}/functions/*.ts", str(tmp_path))

    assert files == [str(tmp_path / "functions" / "a.ts")]


def test_absolute_glob_outside_the_root_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="outside the workspace"):
        ReferenceGraphBuilder().find_candidate_files("/elsewhere/functions/*.ts", str(tmp_path))


def test_missing_reference_map_yields_empty_graph(tmp_path: Path, static_source) -> None:
    graph = ReferenceGraphBuilder(static_source(None)).build("*.ts", str(tmp_path))

    assert len(graph) == 0
    assert graph.dependents(str(tmp_path / "a.ts")) == ()


def test_vendored_pairs_are_dropped(static_source) -> None:
    references = {
        "/r/node_modules/lib/index.d.ts": ["/r/functions/a.function.ts"],
        "/r/src/util.ts": ["/r/functions/b.function.ts", "/r/node_modules/x/y.js"],
        "/r/src/helper.ts": ["/r/functions/c.function.ts"],
    }

    graph = ReferenceGraphBuilder(static_source(references)).build_from_files([], "/r")

    assert graph.origins == ("/r/src/helper.ts",)
    assert graph.dependents("/r/src/util.ts") == ()


def test_vendor_segment_must_be_a_whole_path_component() -> None:
    builder = ReferenceGraphBuilder(vendor_directories=("node_modules", "vendor"))

    assert builder.is_vendored("/r/node_modules/a.ts") is True
    assert builder.is_vendored("/r/vendor/lib.ts") is True
    assert builder.is_vendored("/r/src/node_modules_helper.ts") is False
