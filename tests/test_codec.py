from __future__ import annotations

import math

import pytest

from tileview import codec
from tileview.view_state import ViewState


def test_encode_is_canonical_four_keys_in_fixed_order() -> None:
    state = ViewState(map="caves", x=12.5, y=-3.0, zoom=0.5)

    assert codec.encode(state) == "map=caves&x=12.5&y=-3&zoom=100"


def test_encode_is_idempotent_through_decode(registry) -> None:
    state = ViewState(map="surface", x=1024.0, y=768.25, zoom=2.0)
    query = codec.encode(state)

    assert codec.encode(codec.decode(query, registry)) == query


def test_decode_accepts_leading_question_mark_and_full_url(registry) -> None:
    expected = ViewState(map="surface", x=10.0, y=20.0, zoom=1.0)

    assert codec.decode("?map=surface&x=10&y=20&zoom=0", registry) == expected
    assert codec.decode("https://maps.example/view?map=surface&x=10&y=20&zoom=0", registry) == expected


def test_decode_ignores_extra_parameters(registry) -> None:
    state = codec.decode("utm=abc&map=caves&x=1&y=2&zoom=-100&debug=1", registry)

    assert state == ViewState(map="caves", x=1.0, y=2.0, zoom=2.0)


@pytest.mark.parametrize(
    "query",
    [
        "",
        "x=1&y=2&zoom=0",
        "map=surface&y=2&zoom=0",
        "map=surface&x=1&zoom=0",
        "map=surface&x=1&y=2",
        "map=surface&x=abc&y=2&zoom=0",
        "map=surface&x=1&y=nan&zoom=0",
        "map=surface&x=inf&y=2&zoom=0",
        "map=surface&x=1&y=2&zoom=ten",
        "map=surface&x=1&y=2&zoom=1e9",
        "map=doesNotExist&x=1&y=2&zoom=0",
    ],
)
def test_decode_fails_softly(registry, query: str) -> None:
    assert codec.decode(query, registry) is None


def test_decode_of_non_string_is_none(registry) -> None:
    assert codec.decode(None, registry) is None  # type: ignore[arg-type]


@pytest.mark.parametrize(
    ("code", "zoom"),
    [(0, 1.0), (100, 0.5), (-100, 2.0), (200, 0.25)],
)
def test_zoom_code_transform_is_exact(code: int, zoom: float) -> None:
    assert codec.zoom_from_code(code) == zoom
    assert codec.zoom_to_code(zoom) == code


def test_zoom_to_code_rejects_non_positive() -> None:
    with pytest.raises(ValueError):
        codec.zoom_to_code(0.0)
    with pytest.raises(ValueError):
        codec.zoom_to_code(math.inf)


def test_round_trip_quantizes_zoom_only(registry) -> None:
    state = ViewState(map="surface", x=0.1 + 0.2, y=-1e-9, zoom=0.3)

    decoded = codec.decode(codec.encode(state), registry)

    assert decoded is not None
    assert decoded.map == state.map
    assert decoded.x == state.x
    assert decoded.y == state.y
    assert decoded.zoom == pytest.approx(state.zoom, rel=4e-3)
