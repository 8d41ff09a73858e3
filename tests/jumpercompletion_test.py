from __future__ import annotations

from unittest.mock import MagicMock

from dir_jumper.jumpercompletion import CompletionAdapter


def test_complete_passes_limit_to_resolver() -> None:
    resolver = MagicMock()
    resolver.resolve_ranked.return_value = ["/home/u/projects/foo"]
    adapter = CompletionAdapter(resolver, limit=4)

    result = adapter.complete("fo")

    assert result == ["/home/u/projects/foo"]
    resolver.resolve_ranked.assert_called_once_with("fo", 4)


def test_render_newline_separated_in_rank_order() -> None:
    resolver = MagicMock()
    resolver.resolve_ranked.return_value = [
        "/home/u/projects/foo",
        "/home/u/projects/bar",
    ]
    adapter = CompletionAdapter(resolver)

    assert adapter.render("pr") == "/home/u/projects/foo\n/home/u/projects/bar\n"


def test_render_no_candidates_is_empty() -> None:
    resolver = MagicMock()
    resolver.resolve_ranked.return_value = []
    adapter = CompletionAdapter(resolver)

    assert adapter.render("nothing") == ""
