"""
3D Visual Servoing Simulation

Drives a free-flying camera from an initial pose to a desired pose with a
position-based task built from two features of ᶜM_c*:

    s  = (ᶜt_c*, θu(ᶜR_c*)),    s* = (0, 0)

The control law is eye-in-hand, velocities in the camera frame, interaction
matrix from the current features, constant gain 1 by default.

Usage:
    vservo-sim --iterations 200 --gain 1.0
"""

import argparse
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from vservo.config import ServoConfig
from vservo.features import RotationFrame, ThetaUFeature, TranslationFeature, TranslationFrame
from vservo.simulator import SimulatedCamera
from vservo.task import ServoScheme, ServoTask
from vservo.transforms import inverse_homogeneous, pose_to_homogeneous

# Poses as [tx, ty, tz, θux, θuy, θuz] of the object in the camera frame
INITIAL_POSE = np.array([0.1, 0.2, 2.0, np.radians(20), np.radians(10), np.radians(50)])
DESIRED_POSE = np.array([0.0, 0.0, 1.0, 0.0, 0.0, 0.0])


@dataclass
class SimulationResult:
    """Per-iteration history of a simulated servoing run."""
    velocities: np.ndarray      # (k, 6)
    errors: np.ndarray          # (k, 6)
    final_cMo: np.ndarray       # (4, 4)
    converged: bool
    iterations: int

    @property
    def error_norms(self):
        return np.linalg.norm(self.errors, axis=1)


def run_pbvs_simulation(
    c_pose_o=INITIAL_POSE,
    cd_pose_o=DESIRED_POSE,
    config: Optional[ServoConfig] = None,
    verbose=False,
):
    """
    Run the position-based servoing loop on a simulated camera.

    Args:
        c_pose_o: Initial object pose in the camera frame (6D pose vector)
        cd_pose_o: Object pose in the desired camera frame (6D pose vector)
        config: ServoConfig (defaults read from the environment)
        verbose: Print the task and the error at every iteration

    Returns:
        SimulationResult
    """
    if config is None:
        config = ServoConfig()
    if ServoScheme(config.scheme).is_eye_to_hand:
        raise ValueError("The simulated camera is eye-in-hand; choose an eye_in_hand scheme")

    robot = SimulatedCamera(pose_to_homogeneous(c_pose_o), config.sampling_time)
    cdMo = pose_to_homogeneous(cd_pose_o)
    oMcd = inverse_homogeneous(cdMo)

    # Current features, rebuilt every iteration from cMcd
    t = TranslationFeature(TranslationFrame.CMCD)
    tu = ThetaUFeature(RotationFrame.CRCD)
    cMcd = robot.get_position() @ oMcd
    t.build_from(cMcd)
    tu.build_from(cMcd)

    # Desired features are zero: the camera has reached c*
    td = TranslationFeature(TranslationFrame.CMCD)
    tud = ThetaUFeature(RotationFrame.CRCD)

    task = config.configure(ServoTask())
    task.set_cVe(robot.get_cVe())
    task.set_eJe(robot.get_eJe())
    task.add_feature(t, td)
    task.add_feature(tu, tud)
    if verbose:
        task.print()

    velocities = []
    errors = []
    error_history = []
    converged = False

    for it in range(config.max_iterations):
        cMcd = robot.get_position() @ oMcd
        t.build_from(cMcd)
        tu.build_from(cMcd)

        v = task.compute_control_law()
        robot.set_velocity(v)

        velocities.append(v)
        errors.append(task.error.copy())
        if verbose:
            print(f"[Sim] iter {it + 1:4d}  |e|²={task.error_sum_square():.6e}", flush=True)

        # Converged once the error stays below threshold for a full window
        if config.error_threshold > 0:
            error_history.append(np.linalg.norm(task.error))
            if len(error_history) > config.convergence_window:
                error_history.pop(0)
            if len(error_history) >= config.convergence_window and all(
                e < config.error_threshold for e in error_history
            ):
                converged = True
                break

    if verbose:
        task.print()
    task.kill()

    return SimulationResult(
        velocities=np.array(velocities).reshape(-1, 6),
        errors=np.array(errors).reshape(-1, 6),
        final_cMo=robot.get_position(),
        converged=converged,
        iterations=len(velocities),
    )


def main(argv=None):
    parser = argparse.ArgumentParser(description="Simulate 3D visual servoing of a free-flying camera.")
    parser.add_argument("--iterations", type=int, default=None, help="Maximum number of control iterations.")
    parser.add_argument("--gain", type=float, default=None, help="Constant control gain.")
    parser.add_argument(
        "--adaptive",
        type=float,
        nargs=3,
        metavar=("GAIN_ZERO", "GAIN_INF", "SLOPE"),
        default=None,
        help="Adaptive gain parameters (overrides --gain).",
    )
    parser.add_argument(
        "--interaction",
        choices=["current", "desired", "mean"],
        default=None,
        help="Interaction matrix used by the control law.",
    )
    parser.add_argument("--sampling-time", type=float, default=None, help="Integration step in seconds.")
    parser.add_argument(
        "--error-threshold",
        type=float,
        default=None,
        help="Stop once |e| stays below this for the convergence window (0 disables).",
    )
    parser.add_argument("--quiet", action="store_true", help="Only print the final summary.")
    args = parser.parse_args(argv)

    config = ServoConfig()
    overrides = {}
    if args.iterations is not None:
        overrides["max_iterations"] = args.iterations
    if args.gain is not None:
        overrides["gain"] = args.gain
    if args.adaptive is not None:
        overrides.update(gain_at_zero=args.adaptive[0], gain_at_infinity=args.adaptive[1], gain_slope=args.adaptive[2])
    if args.interaction is not None:
        overrides["interaction"] = args.interaction
    if args.sampling_time is not None:
        overrides["sampling_time"] = args.sampling_time
    if args.error_threshold is not None:
        overrides["error_threshold"] = args.error_threshold
    config = replace(config, **overrides)

    print("[Sim] 3D visual servoing: eye-in-hand, velocity in the camera frame", flush=True)
    print(f"[Sim] initial pose={INITIAL_POSE}, desired pose={DESIRED_POSE}", flush=True)

    result = run_pbvs_simulation(config=config, verbose=not args.quiet)

    final_error = result.error_norms[-1] if result.iterations else float("nan")
    print(
        f"[Sim] done after {result.iterations} iterations | final |e|={final_error:.3e} | "
        f"converged={result.converged}",
        flush=True,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
