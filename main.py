import os
import signal
import sys

from pisoflow import CancellationToken, SimulationCase
from pisoflow.utils.log_setup import setup_logging

# Configure case and output
case_file = sys.argv[1] if len(sys.argv) > 1 else "cases/channel_with_block.yaml"
output_dir = "results"

setup_logging()
case = SimulationCase.from_yaml(case_file)

# Ctrl-C stops the run after the current step and keeps the snapshots so far
token = CancellationToken()
signal.signal(signal.SIGINT, lambda signum, frame: token.cancel())
result = case.run(cancel=token)

os.makedirs(output_dir, exist_ok=True)
name = os.path.splitext(os.path.basename(case_file))[0]
result.save(os.path.join(output_dir, f"{name}.h5"))

# Plotting
result.plot_velocity_magnitude(
    filename=os.path.join(output_dir, f"{name}_velocity.png"),
    obstacles=case.obstacles,
)
print(f"{result.n_snapshots} snapshots, {result.steps_completed}/{result.total_steps} steps, "
      f"solve time {result.solve_time:.2f}s")
