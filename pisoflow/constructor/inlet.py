"""
Inlet velocity functions.

An inlet function has the fixed signature ``inlet(t, y) -> u`` and accepts
scalars or arrays. Time ramps and the wall taper are separate functions that
get composed once before the run starts.
"""

import logging

import numpy as np

from ..errors import ConfigurationError

log = logging.getLogger(__name__)

TUKEY_ALPHA = 0.2
WALL_VELOCITY_TOL = 1e-3
RAMP_KINDS = ("none", "linear", "smoothstep")


def parabolic_profile(u_max, height):
    """Fully developed channel profile with peak ``u_max`` at mid-height."""
    def profile(t, y):
        y = np.asarray(y, dtype=float)
        return 4.0 * u_max * y * (height - y) / height**2 + 0.0 * np.asarray(t, dtype=float)
    return profile


def uniform_profile(value):
    """Plug flow with constant velocity ``value``."""
    def profile(t, y):
        return np.full(np.broadcast(np.asarray(t, dtype=float), np.asarray(y, dtype=float)).shape,
                       float(value))
    return profile


def linear_ramp(t_ramp):
    def ramp(t):
        return np.minimum(1.0, np.asarray(t, dtype=float) / t_ramp)
    return ramp


def smoothstep(x):
    """Cubic Hermite step on [0, 1], clamped outside."""
    x = np.clip(x, 0.0, 1.0)
    return x**2 * (3.0 - 2.0 * x)


def smoothstep_ramp(t_ramp):
    def ramp(t):
        return smoothstep(np.asarray(t, dtype=float) / t_ramp)
    return ramp


def no_ramp(t):
    return np.ones_like(np.asarray(t, dtype=float))


def make_ramp(kind, t_ramp):
    """
    Time ramp factor function.

    Parameters:
    -----------
    kind : str
        'none', 'linear' or 'smoothstep'
    t_ramp : float
        Ramp duration [s]; a non-positive duration disables the ramp
    """
    if kind not in RAMP_KINDS:
        raise ConfigurationError(f"Unknown ramp kind '{kind}'. Choose one of {RAMP_KINDS}.")
    if kind == "none" or t_ramp <= 0:
        return no_ramp
    if kind == "linear":
        return linear_ramp(t_ramp)
    return smoothstep_ramp(t_ramp)


def tukey_window(y, height, alpha=TUKEY_ALPHA):
    """
    Flat-top cosine taper across the channel.

    Equals 1 over the central (1 - alpha) fraction and rolls off to 0 at
    y = 0 and y = height.
    """
    y_norm = np.asarray(y, dtype=float) / height
    w = np.ones_like(y_norm)
    half = alpha / 2.0
    if half <= 0:
        return w

    left = y_norm <= half
    w[left] = 0.5 * (1.0 + np.cos(np.pi * (y_norm[left] / half - 1.0)))
    right = y_norm >= 1.0 - half
    w[right] = 0.5 * (1.0 + np.cos(np.pi * (y_norm[right] - (1.0 - half)) / half))
    return w


def build_inlet_function(profile, ramp_kind, t_ramp, height, wall_mode):
    """
    Compose profile, ramp and (for no-slip walls) the wall taper.

    Parameters:
    -----------
    profile : callable
        Base profile ``profile(t, y)``
    ramp_kind : str
        'none', 'linear' or 'smoothstep'
    t_ramp : float
        Ramp duration [s]
    height : float
        Channel height [m]
    wall_mode : str
        'no-slip' or 'slip'

    Returns:
    --------
    callable
        ``inlet(t, y)`` returning an array broadcast over t and y
    """
    ramp = make_ramp(ramp_kind, t_ramp)

    def base(t, y):
        return np.asarray(profile(t, y), dtype=float) * ramp(t)

    if wall_mode != "no-slip":
        return base

    t_probe = np.arange(0.0, 10.0 + 1e-9, 0.1)
    vel_bottom = float(np.max(np.abs(base(t_probe, np.zeros_like(t_probe)))))
    vel_top = float(np.max(np.abs(base(t_probe, np.full_like(t_probe, height)))))
    if vel_bottom <= WALL_VELOCITY_TOL and vel_top <= WALL_VELOCITY_TOL:
        return base

    log.warning(
        "Inlet profile is non-zero at a no-slip wall (u(y=0)=%.4f, u(y=H)=%.4f); "
        "applying a flat-top window that keeps the central %.0f%% of the profile.",
        vel_bottom, vel_top, 100 * (1 - TUKEY_ALPHA),
    )

    def windowed(t, y):
        return base(t, y) * tukey_window(y, height, TUKEY_ALPHA)

    return windowed


def inlet_velocity_bounds(inlet, height, t_end, t_ramp):
    """
    Estimate the peak inlet speed and a bound for the whole domain.

    Returns:
    --------
    tuple
        (u_inlet_max, u_all_max) where u_all_max = 2 * u_inlet_max
    """
    y_samples = np.linspace(0.0, height, 101)
    t_samples = np.unique(np.concatenate((
        [0.0], np.linspace(0.8 * t_ramp, 1.2 * t_ramp, 51), [t_end],
    )))
    T, Y = np.meshgrid(t_samples, y_samples)
    values = np.asarray(inlet(T, Y), dtype=float)

    u_inlet_max = float(np.max(np.abs(values))) if values.size else 0.0
    if not np.isfinite(u_inlet_max):
        u_inlet_max = 0.0
    return u_inlet_max, 2.0 * u_inlet_max
