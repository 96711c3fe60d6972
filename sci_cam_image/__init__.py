"""Science camera image publishing for ROS 2."""

__version__ = "0.3.0"
