from dataclasses import dataclass, field

import numpy as np

from history import RingBuffer


def _zero():
    return np.zeros(2)


@dataclass
class Charge:
    """The plotted point charge."""
    position: np.ndarray = field(default_factory=_zero)
    velocity: np.ndarray = field(default_factory=_zero)
    acceleration: np.ndarray = field(default_factory=_zero)


class KinematicsIntegrator:
    """
    Advances the charge one tick and records the event into the history.

    The drive is a snap-to-target controller while the pointer is pressed and
    an exponential decay otherwise. Acceleration is the finite difference
    over the last ``avg_time`` velocities.
    """

    def __init__(self, equations, avg_time):
        self.equations = equations
        self.avg_time = int(avg_time)
        self.velocities = RingBuffer(self.avg_time, row_shape=(2,))
        self.velocities.fill(_zero())

    def step(self, charge, target, history, tick_index):
        eq = self.equations
        if target is not None:
            velocity = eq.drive_velocity(charge.position, target)
        else:
            velocity = eq.decay_velocity(charge.velocity)
        velocity = eq.limit_speed(velocity)

        self.velocities.push_front(velocity)
        acceleration = eq.window_acceleration(self.velocities.ago(0),
                                              self.velocities.ago(self.avg_time - 1),
                                              self.avg_time)
        position = eq.advance_position(charge.position, velocity)

        charge.position = position
        charge.velocity = velocity
        charge.acceleration = acceleration

        magnitude, angle = eq.polar(acceleration)
        history.push(position, acceleration, magnitude, angle, tick_index)
        return charge
