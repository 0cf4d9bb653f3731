# boat_dynamics.py

import numpy as np

from .dynamics import KinodynamicModel, wrap_angle

BOAT_WIDTH = 2.8
BOAT_LENGTH = 5.0

# Max force in x, y [N] and max torque [Nm]
TAU_MAX = 200.0
TAU_N_MAX = 6000.0

# Primitive thrust directions as signs of (surge, sway, yaw)
PRIMITIVE_SIGNS = (
    (1, 0, 0), (-1, 0, 0),
    (0, 1, 0), (0, -1, 0),
    (0, 0, 1), (0, 0, -1),
    (1, 0, 1), (1, 0, -1),      # forward while turning
    (0, 1, -1), (0, -1, 1),
    (1, 1, 0), (1, -1, 0),
    (-1, 1, 0), (-1, -1, 0),
    (0, 0, 0),                  # coast
)


class BoatModel(KinodynamicModel):
    """
    3-DOF vessel model of the milliAmpere1 autonomous ferry.

    State = [x, y, psi, u, v, r] (inertial pose, body-frame velocities),
    control = [tau_x, tau_y, tau_n] (body-frame forces and yaw torque).

    Reference:
    Hinostroza et al., "Model Identification, Dynamic Positioning,
    and Thrust Allocation System for the milliAmpere1 Autonomous Ferry Prototype", IEEE Access, 2025.
    """
    name = "boat"
    angular_dims = (2,)

    def __init__(self, bounds=None, position_weight=1.0, heading_weight=1.0,
                 velocity_weight=1.0, velocity_resolution=0.25):
        # --- Physical parameters ---
        self.m = 1800.0         # mass [kg]
        self.Iz = 4860.0        # yaw inertia [kg m^2]
        self.Xu_dot = -215.0
        self.Yv_dot = -1252.0
        self.Nr_dot = -3500.0
        self.Xu = -157.0
        self.Yv = -258.0
        self.Nr = -1000.0

        self.length = BOAT_LENGTH
        self.width = BOAT_WIDTH
        self.footprint = (BOAT_WIDTH, BOAT_LENGTH)
        self.velocity_resolution = float(velocity_resolution)

        M = np.diag([
            self.m - self.Xu_dot,
            self.m - self.Yv_dot,
            self.Iz - self.Nr_dot
        ])
        self._M_inv = np.linalg.inv(M)
        self._D = np.diag([-self.Xu, -self.Yv, -self.Nr])

        if bounds is None:
            bounds = [[0.0, 30.0], [0.0, 30.0], [-np.pi, np.pi],
                      [-2.0, 2.0], [-1.0, 1.0], [-1.5, 1.5]]
        control_bounds = [[-TAU_MAX, TAU_MAX], [-TAU_MAX, TAU_MAX], [-TAU_N_MAX, TAU_N_MAX]]
        weights = [position_weight, position_weight, heading_weight,
                   velocity_weight, velocity_weight, velocity_weight]
        super().__init__(bounds, control_bounds, weights=weights)

    @staticmethod
    def rotation(psi):
        """Rotation matrix from body to inertial frame."""
        return np.array([
            [np.cos(psi), -np.sin(psi), 0],
            [np.sin(psi),  np.cos(psi), 0],
            [0, 0, 1]
        ])

    def damping(self, nu):
        """Linear damping force."""
        return self._D @ nu

    def coriolis(self, nu):
        """Rigid-body Coriolis and centripetal forces."""
        u, v, r = nu
        m = self.m
        return np.array([
            [0, 0, -m*v],
            [0, 0,  m*u],
            [m*v, -m*u, 0]
        ]) @ nu

    def derivative(self, state, control):
        eta = state[:3]
        nu = state[3:6]
        tau = np.asarray(control, dtype=float)
        nu_dot = self._M_inv @ (tau - self.coriolis(nu) - self.damping(nu))
        eta_dot = self.rotation(eta[2]) @ nu
        return np.concatenate([eta_dot, nu_dot])

    def heading(self, state):
        return float(state[2])

    # ------------------------------------------------------------------
    # --- Local frames for motion primitives ---
    # ------------------------------------------------------------------
    def entry_class(self, state):
        """Body velocities rounded to the velocity resolution."""
        nu = np.asarray(state, dtype=float)[3:6]
        return tuple(int(k) for k in np.round(nu / self.velocity_resolution))

    def canonical_state(self, entry_class):
        state = np.zeros(self.state_dim)
        state[3:6] = np.asarray(entry_class, dtype=float) * self.velocity_resolution
        return state

    def to_local(self, origin, state):
        origin = np.asarray(origin, dtype=float)
        state = np.asarray(state, dtype=float)
        c, s = np.cos(origin[2]), np.sin(origin[2])
        dx, dy = state[..., 0] - origin[0], state[..., 1] - origin[1]
        out = np.array(np.broadcast_to(state, np.broadcast(state, origin).shape), dtype=float)
        out[..., 0] = c * dx + s * dy
        out[..., 1] = -s * dx + c * dy
        out[..., 2] = wrap_angle(state[..., 2] - origin[2])
        return out

    def from_local(self, origin, local):
        origin = np.asarray(origin, dtype=float)
        local = np.asarray(local, dtype=float)
        c, s = np.cos(origin[2]), np.sin(origin[2])
        out = np.array(np.broadcast_to(local, np.broadcast(local, origin).shape), dtype=float)
        out[..., 0] = origin[0] + c * local[..., 0] - s * local[..., 1]
        out[..., 1] = origin[1] + s * local[..., 0] + c * local[..., 1]
        out[..., 2] = wrap_angle(origin[2] + local[..., 2])
        return out

    def primitive_controls(self):
        """
        Saturated thrust combinations used to build the primitive library.

        Returns
        -------
        list of np.array
            Control vectors [tau_x, tau_y, tau_n].
        """
        scale = np.array([TAU_MAX, TAU_MAX, TAU_N_MAX])
        return [scale * np.array(signs, dtype=float) for signs in PRIMITIVE_SIGNS]
