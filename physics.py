import numpy as np

from errors import DegenerateGeometryError


class FieldEquations:
    """
    Kinematics and radiation-intensity equations of the plotted charge.

    Units are pixels and ticks; intensities are visualization values only.
    """

    def __init__(self, c=600.0, tick_rate=60, time_step=0.05, damping=0.95,
                 dead_zone=0.5, speed_limit=0.99, min_distance=1e-6):
        self.c = c
        self.tick_rate = tick_rate
        self.time_step = time_step
        self.damping = damping
        self.dead_zone = dead_zone
        self.speed_limit = speed_limit
        self.min_distance = min_distance

    @classmethod
    def from_config(cls, config):
        return cls(c=config.propagation_speed, tick_rate=config.tick_rate,
                   time_step=config.time_step, damping=config.damping,
                   dead_zone=config.dead_zone, speed_limit=config.speed_limit,
                   min_distance=config.min_distance)

    #########################################
    #########################################
    def drive_velocity(self, position, target):
        """Snap-to-target controller: the velocity points straight at the target."""
        return np.asarray(target, dtype=np.float64) - position

    #########################################
    def decay_velocity(self, v):
        """
        Damp each velocity component towards zero once the drive is released.
        Components at or below the dead zone are set to exactly 0.
        """
        v_copy = np.asarray(v, dtype=np.float64).copy()
        return np.where(np.abs(v_copy) > self.dead_zone, self.damping * v_copy, 0.0)

    #########################################
    def limit_speed(self, v, limit=None):
        """
        Limit the magnitude of the velocity vector to a maximum speed.
        Parameters:
        - v: Velocity vector of the charge (numpy array).
        - limit: Fraction of the speed of light allowed (default ``speed_limit``).
        Returns:
        - Adjusted velocity vector, same direction.
        """
        limit = self.speed_limit if limit is None else limit
        v_copy = np.asarray(v, dtype=np.float64).copy()
        speed = np.linalg.norm(v_copy)
        if speed > (self.c * limit):
            return (v_copy / speed) * (limit * self.c)
        return v_copy

    #########################################
    def window_acceleration(self, newest, oldest, window):
        """Finite-difference acceleration over a velocity window of ``window`` samples."""
        return (np.asarray(newest) - np.asarray(oldest)) / (window - 1)

    #########################################
    def advance_position(self, position, v):
        return position + self.time_step * v

    #########################################
    def polar(self, vector):
        """
        Magnitude and polar angle of a vector.
        The angle is ``atan2(x, y)``, measured from the y axis, which is the
        same convention ``field_intensity`` uses for the observation direction.
        """
        return float(np.hypot(vector[0], vector[1])), float(np.arctan2(vector[0], vector[1]))

    #########################################
    #########################################
    def light_radius(self, ticks_ago):
        """Distance covered by the field since an event ``ticks_ago`` ticks old."""
        return self.c * np.asarray(ticks_ago, dtype=np.float64) / self.tick_rate

    #########################################
    def calculate_retarded_distance(self, points, retarded_positions):
        """
        Calculate the vector difference and magnitude from the retarded
        positions to the sample points.

        Parameters:
        - points: ``(N, 2)`` sample coordinates.
        - retarded_positions: ``(N, 2)`` or ``(2,)`` charge positions.
        Returns:
        - r_retarded: vector difference from retarded position to point.
        - r_retarded_mag: magnitude of the vector difference.
        """
        r_retarded = np.asarray(points, dtype=np.float64) - retarded_positions
        r_retarded_mag = np.hypot(r_retarded[..., 0], r_retarded[..., 1])
        return r_retarded, r_retarded_mag

    #########################################
    def light_cone_residual(self, points, event_positions, first=0):
        """
        |distance(point, event k) - c * k / tick_rate| for every point and event.
        ``event_positions`` holds events ``first, first + 1, ...`` ticks old.
        Returns an ``(N, E)`` array; small values mean event k is visible now.
        """
        diff = np.asarray(points, dtype=np.float64)[:, None, :] - event_positions[None, :, :]
        distance = np.hypot(diff[..., 0], diff[..., 1])
        ticks_ago = first + np.arange(event_positions.shape[0])
        return np.abs(distance - self.light_radius(ticks_ago)[None, :])

    #########################################
    #########################################
    def field_intensity(self, r_retarded, r_retarded_mag, acc_magnitude, acc_angle, field_magnitude):
        """
        Radiation intensity approximated by |sin(angle)| * acceleration / distance.

        The angle is between the observation direction and the retarded
        acceleration. Distances are clamped to ``min_distance``.
        Parameters:
        - r_retarded: ``(N, 2)`` vectors from the retarded positions to the cells.
        - r_retarded_mag: ``(N,)`` their lengths.
        - acc_magnitude, acc_angle: ``(N,)`` retarded acceleration in polar form.
        - field_magnitude: global intensity multiplier.
        Returns:
        - ``(N,)`` intensities.
        """
        distance_angle = np.arctan2(r_retarded[..., 0], r_retarded[..., 1])
        angle_sine = np.sin(distance_angle - acc_angle)
        distance = np.maximum(r_retarded_mag, self.min_distance)
        intensity = field_magnitude * np.abs(angle_sine) * acc_magnitude / distance
        if not np.all(np.isfinite(intensity)):
            bad = int(np.count_nonzero(~np.isfinite(intensity)))
            raise DegenerateGeometryError(f"{bad} cell(s) produced a non-finite field intensity")
        return intensity

    #########################################
    def intensity_change(self, intensity, oldest, history_max):
        """
        |intensity - oldest| / max(history); 0 where the history maximum is 0.
        """
        change = np.zeros_like(intensity, dtype=np.float64)
        np.divide(np.abs(intensity - oldest), history_max, out=change, where=history_max > 0)
        return change
