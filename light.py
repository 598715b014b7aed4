import numpy as np


class PhotonPulse:
    """
    Stylised photon running along a horizontal strip at the speed of light,
    shown next to the field as a scale for c.
    """

    def __init__(self, c=600.0, width=300, height=60, tick_rate=60, sample_step=4):
        self.tick_rate = tick_rate
        self.sample_step = sample_step
        self.x = 0.0
        self.update(c, width, height)

    def update(self, c, width, height):
        """Apply new strip size and speed, keeping the photon's phase."""
        if width <= 0 or height <= 0:
            raise ValueError(f"strip size must be positive, got {width}x{height}")
        self.c = c
        self.width = width
        self.height = height
        self.half_height = int(np.floor(height / 2 + 0.5))
        self.x = self.x % width

    def step(self):
        self.x = (self.x + self.c / self.tick_rate) % self.width
        return self.x

    def profile(self):
        """
        Sample positions and pulse heights every ``sample_step`` pixels.
        The height is ``(4 * d / width) ** 3`` with ``d`` the wrapped distance
        to the photon.
        """
        xs = np.arange(0, self.width, self.sample_step, dtype=np.float64)
        naive = np.abs(self.x - xs)
        distance = np.minimum(naive, self.width - naive)
        return xs, (4 * distance / self.width) ** 3
