"""
Drake Systems for Visual Servoing

LeafSystem wrappers that put a ServoTask inside a Drake diagram:

    FreeFlyingCameraSystem --cMo--> ServoTaskSystem --velocity--> FreeFlyingCameraSystem

ServoTaskSystem hands its measurement input to a user callback that rebuilds
the task's features, then outputs the control law. FreeFlyingCameraSystem
holds ᶜM_o as discrete state and integrates the commanded camera velocity
once per sampling period.

Requires the optional `drake` dependency.
"""

import numpy as np
from pydrake.all import DiagramBuilder, LeafSystem

from vservo.simulator import SimulatedCamera


class ServoTaskSystem(LeafSystem):
    """
    LeafSystem evaluating a ServoTask.

    Input:
        - measurement: Vector of size measurement_size, passed to update_features

    Outputs:
        - velocity: Control law output (6 for a camera velocity, n for joints)
        - error_norm: |s - s*| for the current measurement
    """

    def __init__(self, task, update_features, measurement_size, output_size=6):
        """
        Args:
            task: Configured ServoTask with its features registered
            update_features: Callable(measurement) calling build_from on the task's features
            measurement_size: Size of the measurement input port
            output_size: Size of the velocity output port
        """
        LeafSystem.__init__(self)

        self.task = task
        self.update_features = update_features

        self.measurement_input = self.DeclareVectorInputPort(
            "measurement",
            size=measurement_size
        )

        self.velocity_output = self.DeclareVectorOutputPort(
            "velocity",
            size=output_size,
            calc=self._calc_velocity
        )

        self.error_norm_output = self.DeclareVectorOutputPort(
            "error_norm",
            size=1,
            calc=self._calc_error_norm
        )

    def _refresh(self, context):
        measurement = self.measurement_input.Eval(context)
        self.update_features(np.asarray(measurement, dtype=float))

    def _calc_velocity(self, context, output):
        """Rebuild the features and compute the control law."""
        self._refresh(context)
        v = self.task.compute_control_law()
        if v.size != output.size():
            raise ValueError(
                f"Control law produced {v.size} components but the velocity port has {output.size()}"
            )
        output.SetFromVector(v)

    def _calc_error_norm(self, context, output):
        self._refresh(context)
        e = self.task.compute_error()
        output.SetFromVector(np.array([np.linalg.norm(e)]))


class FreeFlyingCameraSystem(LeafSystem):
    """
    LeafSystem simulating a free-flying camera.

    Input:
        - camera_velocity: 6D velocity in the camera frame

    Output:
        - cMo: Object pose in the camera frame, 4x4 flattened row-major (16)
    """

    def __init__(self, cMo=None, sampling_time=SimulatedCamera.DEFAULT_SAMPLING_TIME):
        LeafSystem.__init__(self)

        self._camera = SimulatedCamera(cMo, sampling_time)

        self.velocity_input = self.DeclareVectorInputPort("camera_velocity", size=6)

        self._pose_index = self.DeclareDiscreteState(self._camera.get_position().flatten())

        # Output only depends on state, so the servo loop has no algebraic loop
        self.pose_output = self.DeclareVectorOutputPort(
            "cMo",
            size=16,
            calc=self._calc_pose,
            prerequisites_of_calc={self.xd_ticket()},
        )

        self.DeclarePeriodicDiscreteUpdateEvent(sampling_time, 0.0, self._integrate)

    def _integrate(self, context, discrete_state):
        """Apply the commanded velocity for one sampling period."""
        cMo = context.get_discrete_state(int(self._pose_index)).CopyToVector().reshape(4, 4)
        v = self.velocity_input.Eval(context)

        self._camera.set_position(cMo)
        cMo_next = self._camera.set_velocity(v)

        discrete_state.get_mutable_vector(int(self._pose_index)).SetFromVector(cMo_next.flatten())

    def _calc_pose(self, context, output):
        output.SetFromVector(context.get_discrete_state(int(self._pose_index)).CopyToVector())


def build_camera_servo_diagram(task, update_features, cMo, sampling_time=SimulatedCamera.DEFAULT_SAMPLING_TIME):
    """
    Close the loop between a ServoTask and a simulated camera.

    Args:
        task: Configured ServoTask producing a camera-frame velocity
        update_features: Callable(cMo_flat) rebuilding the task's features from the 16-vector pose
        cMo: Initial 4x4 object pose in the camera frame
        sampling_time: Camera integration step

    Returns:
        (diagram, servo_system, camera_system)
    """
    builder = DiagramBuilder()

    camera = builder.AddSystem(FreeFlyingCameraSystem(cMo, sampling_time))
    servo = builder.AddSystem(ServoTaskSystem(task, update_features, measurement_size=16, output_size=6))

    builder.Connect(camera.pose_output, servo.measurement_input)
    builder.Connect(servo.velocity_output, camera.velocity_input)

    diagram = builder.Build()
    return diagram, servo, camera
