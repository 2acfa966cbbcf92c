"""Tests for the geometry model and bounds accumulation."""

from __future__ import annotations

import json
import math
from pathlib import Path

import pytest
from pydantic import TypeAdapter, ValidationError

from layout_ingest.detect import LayoutFormat
from layout_ingest.geometry import (
    DEFAULT_BOUNDS,
    DEFAULT_SUBSTRATE,
    GEOMETRY_SCHEMA,
    Bounds,
    BoundsAccumulator,
    Conductor,
    CoupledTraceConductor,
    Geometry,
    PolygonConductor,
    Port,
    Substrate,
    TraceConductor,
    ViaConductor,
    canonical_json_dumps,
    geometry_canonical_json,
    validate_geometry_payload,
    write_geometry_json,
)


class TestConductors:
    """Derived attributes of each conductor variant."""

    def test_trace_length_is_euclidean(self) -> None:
        trace = TraceConductor(id=1, start=(0.0, 0.0), end=(3.0, 4.0), width=0.5)
        assert trace.length == pytest.approx(5.0)
        assert trace.position == (0.0, 0.0)
        assert trace.center == (1.5, 2.0)

    def test_trace_footprint_includes_half_width(self) -> None:
        trace = TraceConductor(id=1, start=(10.0, 0.0), end=(0.0, 0.0), width=2.0)
        assert trace.footprint() == (-1.0, 11.0, -1.0, 1.0)

    def test_coupled_trace_length(self) -> None:
        trace = CoupledTraceConductor(id=2, start=(0.0, 1.0), end=(0.0, 6.0), width=0.3, coupling_spacing=0.2)
        assert trace.length == pytest.approx(5.0)
        assert trace.type == "coupled_trace"

    def test_via_footprint_and_width(self) -> None:
        via = ViaConductor(id=1, position=(5.0, 5.0), diameter=0.8, drill=0.4)
        assert via.length == 0.0
        assert via.width == 0.8
        assert via.footprint() == pytest.approx((4.6, 5.4, 4.6, 5.4))

    def test_polygon_bbox_width_length(self) -> None:
        polygon = PolygonConductor(id=1, vertices=((5, 8), (25, 8), (25, 10), (5, 10)), metal_level=1)
        assert polygon.bbox.as_tuple() == (5.0, 25.0, 8.0, 10.0)
        assert polygon.width == pytest.approx(2.0)
        assert polygon.length == pytest.approx(20.0)
        assert polygon.position == (15.0, 9.0)

    def test_polygon_requires_vertices(self) -> None:
        with pytest.raises(ValidationError):
            PolygonConductor(id=1, vertices=())

    def test_negative_width_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TraceConductor(id=1, start=(0, 0), end=(1, 0), width=-1.0)

    def test_ids_are_one_based(self) -> None:
        with pytest.raises(ValidationError):
            ViaConductor(id=0, position=(0, 0), diameter=1.0)

    def test_models_are_frozen(self) -> None:
        via = ViaConductor(id=1, position=(0, 0), diameter=1.0)
        with pytest.raises(ValidationError):
            via.diameter = 2.0  # type: ignore[misc]

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            Port(id=1, position=(0, 0), color="red")  # type: ignore[call-arg]

    def test_conductor_union_dispatches_on_type(self) -> None:
        adapter = TypeAdapter(Conductor)
        conductor = adapter.validate_python({"type": "via", "id": 3, "position": (1, 2), "diameter": 0.5})
        assert isinstance(conductor, ViaConductor)


class TestSubstrate:
    """Backfilling of absent and out-of-range substrate fields."""

    def test_defaults(self) -> None:
        assert DEFAULT_SUBSTRATE.model_dump() == {"er": 4.3, "h": 1.6, "t": 0.035, "tand": 0.02}

    def test_valid_fields_kept(self) -> None:
        substrate, backfilled = Substrate.from_partial(er=3.66, h=0.508, t=0.035, tand=0.004)
        assert substrate == Substrate(er=3.66, h=0.508, t=0.035, tand=0.004)
        assert backfilled == []

    @pytest.mark.parametrize(
        ("field", "value"),
        [("er", 0.5), ("er", 120.0), ("h", 0.0), ("t", -0.1), ("tand", 1.5), ("tand", -0.01), ("er", math.nan)],
    )
    def test_out_of_range_field_backfilled(self, field: str, value: float) -> None:
        fields = {"er": 3.0, "h": 1.0, "t": 0.02, "tand": 0.001, field: value}
        substrate, backfilled = Substrate.from_partial(**fields)
        assert backfilled == [field]
        assert getattr(substrate, field) == getattr(DEFAULT_SUBSTRATE, field)

    def test_missing_fields_use_given_defaults(self) -> None:
        defaults = Substrate(er=2.2, h=0.787, t=0.018, tand=0.0009)
        substrate, backfilled = Substrate.from_partial(er=3.0, defaults=defaults)
        assert substrate == Substrate(er=3.0, h=0.787, t=0.018, tand=0.0009)
        assert backfilled == ["h", "t", "tand"]


class TestBoundsAccumulator:
    """The running bounding box only widens."""

    def test_empty_accumulator_falls_back_to_default(self) -> None:
        bounds, used_default = BoundsAccumulator().finalize()
        assert used_default is True
        assert bounds == DEFAULT_BOUNDS
        assert (bounds.width, bounds.height) == (20.0, 20.0)

    def test_single_trace(self) -> None:
        acc = BoundsAccumulator()
        acc.include(TraceConductor(id=1, start=(100, 200), end=(110, 200), width=2.0))
        bounds, used_default = acc.finalize()
        assert used_default is False
        assert bounds.as_tuple() == (99.0, 111.0, 199.0, 201.0)

    def test_monotonic_widening(self) -> None:
        conductors = [
            TraceConductor(id=1, start=(0, 0), end=(10, 0), width=1.0),
            ViaConductor(id=2, position=(5, 5), diameter=0.8),
            PolygonConductor(id=3, vertices=((-3, -3), (2, -3), (2, 1))),
            TraceConductor(id=4, start=(1, 1), end=(2, 2), width=0.1),
        ]
        acc = BoundsAccumulator()
        snapshots = []
        for conductor in conductors:
            acc.include(conductor)
            snapshots.append(Bounds.from_tuple(acc.snapshot()))
        for earlier, later in zip(snapshots, snapshots[1:]):
            assert later.contains(earlier)
        assert snapshots[-1] == snapshots[-2]

    def test_include_rect(self) -> None:
        acc = BoundsAccumulator()
        acc.include_rect(0.0, 40.0, 0.0, 20.0)
        acc.include(ViaConductor(id=1, position=(50, 10), diameter=2.0))
        assert acc.snapshot() == (0.0, 51.0, 0.0, 20.0)

    def test_partial_sentinel_is_not_finite(self) -> None:
        acc = BoundsAccumulator(xmin=0.0, xmax=1.0)
        assert acc.is_finite is False


class TestSerialization:
    """Canonical JSON output of a geometry."""

    def _geometry(self) -> Geometry:
        return Geometry(
            source_format=LayoutFormat.QUCS,
            conductors=(TraceConductor(id=1, start=(0, 0), end=(3, 4), width=1.0),),
            ports=(Port(id=1, position=(0, 0), number=1),),
            bounds=Bounds(xmin=-0.5, xmax=3.5, ymin=-0.5, ymax=4.5),
        )

    def test_canonical_json_is_sorted_and_compact(self) -> None:
        assert canonical_json_dumps({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_canonical_json_rejects_nan(self) -> None:
        with pytest.raises(ValueError):
            canonical_json_dumps({"x": math.nan})

    def test_geometry_json_contains_derived_length(self) -> None:
        payload = json.loads(geometry_canonical_json(self._geometry()))
        assert payload["source_format"] == "qucs"
        assert payload["units"] == "mm"
        assert payload["conductors"][0]["type"] == "trace"
        assert payload["conductors"][0]["length"] == pytest.approx(5.0)
        assert payload["substrate"] == {"er": 4.3, "h": 1.6, "t": 0.035, "tand": 0.02}

    def test_write_geometry_json(self, tmp_path: Path) -> None:
        out = tmp_path / "geometry.json"
        write_geometry_json(out, self._geometry())
        text = out.read_text(encoding="utf-8")
        assert text.endswith("\n")
        assert json.loads(text)["bounds"] == {"xmin": -0.5, "xmax": 3.5, "ymin": -0.5, "ymax": 4.5}


class TestJsonSchema:
    """Exported payloads validate against the serialization schema."""

    def test_schema_describes_geometry(self) -> None:
        assert GEOMETRY_SCHEMA["title"] == "Geometry"
        assert "conductors" in GEOMETRY_SCHEMA["properties"]

    def test_valid_payload(self) -> None:
        geometry = Geometry(
            source_format=LayoutFormat.SONNET,
            conductors=(
                PolygonConductor(id=1, vertices=((0, 0), (1, 0), (1, 1))),
                ViaConductor(id=2, position=(0, 0), diameter=0.5),
            ),
        )
        payload = json.loads(geometry_canonical_json(geometry))
        assert validate_geometry_payload(payload) == []

    def test_invalid_payload(self) -> None:
        payload = json.loads(geometry_canonical_json(Geometry(source_format=LayoutFormat.KICAD)))
        payload["source_format"] = "gerber"
        payload["units"] = "inch"
        errors = validate_geometry_payload(payload)
        assert any(error.startswith("source_format:") for error in errors)
        assert any(error.startswith("units:") for error in errors)
