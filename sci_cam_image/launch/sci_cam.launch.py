"""Launch file for the science camera publisher."""

from __future__ import annotations

from launch import LaunchDescription
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch_ros.actions import Node
from launch_ros.parameter_descriptions import ParameterValue

from sci_cam_image.utils.config import default_config_path


def generate_launch_description() -> LaunchDescription:
    return LaunchDescription(
        [
            DeclareLaunchArgument("config", default_value=str(default_config_path())),
            DeclareLaunchArgument("source", default_value="0"),
            DeclareLaunchArgument("namespace", default_value=""),
            Node(
                package="sci_cam_image",
                executable="sci_cam_node",
                name="sci_cam_node",
                namespace=LaunchConfiguration("namespace"),
                parameters=[
                    {
                        "config": LaunchConfiguration("config"),
                        # Keep "0" a string so it matches the declared parameter type.
                        "source": ParameterValue(
                            LaunchConfiguration("source"), value_type=str
                        ),
                    }
                ],
            ),
        ]
    )
