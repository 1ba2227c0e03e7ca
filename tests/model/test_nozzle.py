import pytest

from flushplan.model.nozzle import NozzleGroupResult, NozzleInfo


@pytest.fixture
def nozzles() -> NozzleGroupResult:
    nozzle_list = [
        NozzleInfo(extruder_id=0, group_id=0, diameter=0.4),
        NozzleInfo(extruder_id=0, group_id=1),
        NozzleInfo(extruder_id=1, group_id=2, volume_type="high-flow"),
    ]
    return NozzleGroupResult.from_nozzle_list([0, 0, 1, 2, -1], nozzle_list)


def test_lookup(nozzles):
    assert nozzles.get_nozzle_for_filament(3).volume_type == "high-flow"
    assert nozzles.get_nozzle_for_filament(4) is None
    assert nozzles.get_extruder_id(2) == 0
    assert nozzles.get_extruder_id(4) == -1


def test_same_nozzle(nozzles):
    assert nozzles.are_filaments_same_nozzle(0, 1)
    assert not nozzles.are_filaments_same_nozzle(0, 2)
    assert not nozzles.are_filaments_same_nozzle(0, 4)


def test_counts(nozzles):
    assert nozzles.get_extruder_list() == [0, 1]
    assert nozzles.get_nozzle_count() == 3
    assert nozzles.get_nozzle_count(0) == 2
    assert nozzles.get_nozzle_count(5) == 0


def test_unknown_nozzle_index():
    with pytest.raises(ValueError, match="unknown nozzle"):
        NozzleGroupResult.from_nozzle_list([3], [NozzleInfo(0, 0)])


def test_nozzle_info_is_frozen():
    info = NozzleInfo(extruder_id=0, group_id=0)
    with pytest.raises(AttributeError):
        info.group_id = 1  # type: ignore[misc]
