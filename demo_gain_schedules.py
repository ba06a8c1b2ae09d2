# demo_gain_schedules.py
"""
Example experiment:
 - Build a demo with stiffness schedules in its misc channel
 - Train a DMP with gain schedules on it
 - Run the real-time integration loop and time the steps
 - Compare step-wise rollout, analytical solution and demonstration
 - Retrain the gains on a modified schedule and export the result
"""
import numpy as np
import matplotlib.pyplot as plt
import time
import os

from primitives.demo_utils import make_demo, init_from_demo, rollout
from primitives.plotting import plot_reproduction


def main(doPlot=True, export=False):
    print("\n🚀 Starting gain schedule experiment")

    # ----- Parameters and Setup -----
    D, G = 3, 3
    duration, dt = 1.0, 0.005
    n_basis_functions, n_basis_functions_gains = 15, 10
    save_directory = "records/gain_schedules"

    demo = make_demo(duration=duration, timesteps=int(duration / dt) + 1, n_dims=D, n_gains=G)
    dmp = init_from_demo(demo, n_basis_functions=n_basis_functions,
                         n_basis_functions_gains=n_basis_functions_gains)

    # ----- Real-time loop -----
    n_steps = int(np.ceil(duration / dt)) + 1
    x, xd, gains = dmp.integrate_start()
    x_next, xd_next = np.zeros_like(x), np.zeros_like(xd)
    step_times = np.zeros(n_steps - 1)
    for i in range(n_steps - 1):
        t0 = time.perf_counter()
        dmp.integrate_step(dt, x, x_next, xd_next, gains)
        step_times[i] = time.perf_counter() - t0
        x, x_next = x_next, x
    print(f"Median step time: {1e6 * np.median(step_times):.1f}us")
    print(f"Max step time: {1e6 * np.max(step_times):.1f}us")
    print(f"Final gains: {np.round(gains, 2)}")

    # ----- Analytical solution vs demonstration -----
    reproduction = dmp.analytical_solution_as_trajectory(demo.ts)
    err_pos = np.max(np.abs(reproduction.ys - demo.ys))
    err_gains = np.max(np.abs(reproduction.misc - demo.misc))
    print(f"Max position error: {err_pos:.4f}")
    print(f"Max gain error: {err_gains:.4f}")

    # ----- Retrain gains on a softer schedule -----
    softer = make_demo(duration=duration, timesteps=demo.length(), n_dims=D, n_gains=G, k_max=150.0)
    dmp.train(softer, save_directory=save_directory if export else None, overwrite=True)
    print(f"Gains after retraining: {np.round(dmp.analytical_solution(demo.ts)[4][demo.length() // 2], 2)}")

    if doPlot:
        fig = plot_reproduction(softer, dmp.analytical_solution_as_trajectory(demo.ts),
                                rollout=rollout(dmp, dt))
        fig.canvas.manager.set_window_title('Gain schedules')
        plt.show()

    if export:
        os.makedirs("records", exist_ok=True)
        filename = "records/reproduction.pkl"
        dmp.analytical_solution_as_trajectory(demo.ts).save(filename)
        print(f"Saved reproduction to {filename}")


if __name__ == "__main__":
    main(doPlot=True, export=False)
