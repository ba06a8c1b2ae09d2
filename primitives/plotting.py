#usr/bin/env python3
"""
Plots of demonstrations, reproductions and gain schedules.
"""
import matplotlib.pyplot as plt


def plot_trajectory(ax, traj, label="", **kwargs):
    """Positions of every dimension against time."""
    for d in range(traj.dim()):
        ax.plot(traj.ts, traj.ys[:, d], label=f"{label} y{d}" if label else None, **kwargs)
    ax.set_xlabel("Time [s]")
    ax.set_ylabel("y")
    ax.grid(True)


def plot_gains(ax, ts, gains, label="", **kwargs):
    """Gain schedules (T, G) against time."""
    for g in range(gains.shape[1]):
        ax.plot(ts, gains[:, g], label=f"{label} k{g}" if label else None, **kwargs)
    ax.set_xlabel("Time [s]")
    ax.set_ylabel("Gain")
    ax.grid(True)


def plot_reproduction(demo, reproduction, rollout=None):
    """
    Side-by-side comparison of demonstration and reproduction:
    left positions, right gain schedules (misc channels).
    rollout: optional dict from demo_utils.rollout, drawn dashed
    """
    fig, (ax_pos, ax_gains) = plt.subplots(1, 2, figsize=(14, 5))
    plot_trajectory(ax_pos, demo, label="Demo", color="red", linewidth=2)
    plot_trajectory(ax_pos, reproduction, label="Analytical", color="green")
    if demo.misc is not None:
        plot_gains(ax_gains, demo.ts, demo.misc, label="Demo", color="red", linewidth=2)
    if reproduction.misc is not None:
        plot_gains(ax_gains, reproduction.ts, reproduction.misc, label="Analytical", color="green")

    if rollout is not None:
        D = demo.dim()
        for d in range(D):
            ax_pos.plot(rollout['t'], rollout['x'][:, d], 'k--', alpha=0.6)
        plot_gains(ax_gains, rollout['t'], rollout['gains'], color="black", linestyle="--", alpha=0.6)

    ax_pos.set_title("Positions")
    ax_gains.set_title("Gain schedules")
    ax_pos.legend(loc='upper left', fontsize='small')
    ax_gains.legend(loc='upper right', fontsize='small')
    return fig
