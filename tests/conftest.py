import pytest

from config import CanvasSize, SimulationConfig
from simulation import WaveSimulation


@pytest.fixture
def config():
    return SimulationConfig(propagation_speed=600, cell_size=30, field_magnitude=1)


@pytest.fixture
def canvas():
    return CanvasSize(900, 600)


@pytest.fixture
def simulation(config, canvas):
    sim = WaveSimulation()
    sim.configure(config, canvas)
    return sim


def drive(sim, targets):
    """Tick once per target, failing loudly on a bad tick."""
    for target in targets:
        result = sim.tick(target)
        assert result.ok, result.error
