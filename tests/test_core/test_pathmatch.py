"""Tests for mooring.pathmatch — pattern grammar, options, compile errors."""

import pytest

from mooring.exceptions import PatternError
from mooring.pathmatch import MatcherOptions, compile_pattern


class TestNamedParameters:
    def test_extracts_single_param(self) -> None:
        matcher = compile_pattern("/users/:id")
        assert matcher.keys == ("id",)
        assert matcher.exec("/users/42") == {"id": "42"}

    def test_missing_segment_does_not_match(self) -> None:
        matcher = compile_pattern("/users/:id")
        assert matcher.exec("/users") is None
        assert matcher.test("/users") is False

    def test_param_does_not_cross_slash(self) -> None:
        matcher = compile_pattern("/users/:id")
        assert matcher.exec("/users/42/posts") is None

    def test_multiple_params_in_order(self) -> None:
        matcher = compile_pattern("/users/:user_id/posts/:post_id")
        assert matcher.keys == ("user_id", "post_id")
        assert matcher.exec("/users/7/posts/99") == {"user_id": "7", "post_id": "99"}

    def test_param_inside_segment(self) -> None:
        matcher = compile_pattern("/files/:name.json")
        assert matcher.exec("/files/report.json") == {"name": "report"}

    def test_static_pattern(self) -> None:
        matcher = compile_pattern("/health")
        assert matcher.exec("/health") == {}
        assert matcher.keys == ()


class TestCustomExpressions:
    def test_custom_expression(self) -> None:
        matcher = compile_pattern(r"/items/:id(\d+)")
        assert matcher.exec("/items/12") == {"id": "12"}
        assert matcher.test("/items/abc") is False

    def test_unnamed_group(self) -> None:
        matcher = compile_pattern(r"/archive/(\d{4})")
        assert matcher.keys == ("0",)
        assert matcher.exec("/archive/2024") == {"0": "2024"}

    def test_alternation(self) -> None:
        matcher = compile_pattern("/:lang(en|de)")
        assert matcher.exec("/de") == {"lang": "de"}
        assert matcher.test("/fr") is False


class TestModifiers:
    def test_optional(self) -> None:
        matcher = compile_pattern("/posts/:page?")
        assert matcher.exec("/posts") == {}
        assert matcher.exec("/posts/3") == {"page": "3"}

    def test_zero_or_more(self) -> None:
        matcher = compile_pattern("/static/:path*")
        assert matcher.exec("/static") == {}
        assert matcher.exec("/static/css/site.css") == {"path": "css/site.css"}

    def test_one_or_more(self) -> None:
        matcher = compile_pattern("/docs/:path+")
        assert matcher.test("/docs") is False
        assert matcher.exec("/docs/a/b") == {"path": "a/b"}

    def test_escaped_modifier_is_literal(self) -> None:
        matcher = compile_pattern(r"/what\?")
        assert matcher.test("/what?") is True
        assert matcher.test("/wha") is False


class TestOptions:
    def test_case_insensitive_by_default(self) -> None:
        assert compile_pattern("/About").test("/about") is True

    def test_sensitive(self) -> None:
        matcher = compile_pattern("/About", MatcherOptions(sensitive=True))
        assert matcher.test("/about") is False
        assert matcher.test("/About") is True

    def test_trailing_slash_allowed_when_not_strict(self) -> None:
        matcher = compile_pattern("/about")
        assert matcher.test("/about/") is True

    def test_strict_trailing_slash(self) -> None:
        matcher = compile_pattern("/about", MatcherOptions(strict=True))
        assert matcher.test("/about/") is False
        assert matcher.test("/about") is True

    def test_prefix_match_when_end_disabled(self) -> None:
        matcher = compile_pattern("/api", MatcherOptions(end=False))
        assert matcher.test("/api") is True
        assert matcher.test("/api/users") is True
        assert matcher.test("/apiary") is False

    def test_root_prefix_matches_everything(self) -> None:
        matcher = compile_pattern("/", MatcherOptions(end=False))
        assert matcher.test("/") is True
        assert matcher.test("/anything/at/all") is True

    def test_root_pattern(self) -> None:
        matcher = compile_pattern("/")
        assert matcher.test("/") is True
        assert matcher.test("/x") is False


class TestDeterminism:
    @pytest.mark.parametrize("pattern,path", [
        ("/users/:id", "/users/42"),
        ("/users/:id", "/users"),
        ("/a/:b?/:c*", "/a/x/y/z"),
        (r"/n/:num(\d+)", "/n/abc"),
    ])
    def test_compiling_twice_gives_same_result(self, pattern: str, path: str) -> None:
        first = compile_pattern(pattern)
        second = compile_pattern(pattern)
        assert first.test(path) == second.test(path)
        assert first.exec(path) == second.exec(path)


class TestPatternErrors:
    @pytest.mark.parametrize("pattern", [
        "/users/:id(\\d+",
        "/users/(abc",
        "/users/abc)",
        "/users/:",
        "/users/:id((\\d+))",
        "/users/?",
        "/users\\",
        "/items/:id/:id",
        "/bad/:id([)",
        "/empty/()",
    ])
    def test_malformed_pattern_raises(self, pattern: str) -> None:
        with pytest.raises(PatternError):
            compile_pattern(pattern)

    def test_non_string_pattern(self) -> None:
        with pytest.raises(PatternError):
            compile_pattern(42)  # type: ignore[arg-type]
