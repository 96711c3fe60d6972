import sys
from glob import glob
from pathlib import Path

from setuptools import find_packages, setup
from setuptools.command.develop import develop as _DevelopCommand


# ``colcon`` forwards ``--editable`` as a *global* option when invoking
# ``setup.py`` and setuptools rejects it before the develop command runs.
# Strip it here; the develop command below still honours it.
def _strip_editable_flags(argv):
    """Return ``argv`` without any variant of the ``--editable`` flag."""

    return [
        arg
        for arg in argv
        if arg not in ('--editable', '-e') and not arg.startswith('--editable=')
    ]


sys.argv[:] = _strip_editable_flags(sys.argv)


class DevelopCommand(_DevelopCommand):
    """Develop command that tolerates the colcon ``--editable`` flag."""

    user_options = list(_DevelopCommand.user_options)
    if not any(option[0].startswith('editable') for option in user_options):
        user_options.append(
            ('editable', 'e', 'Install in editable mode (compatibility flag).')
        )

    boolean_options = list(getattr(_DevelopCommand, 'boolean_options', []))
    if 'editable' not in boolean_options:
        boolean_options.append('editable')

    def initialize_options(self):
        super().initialize_options()
        if not hasattr(self, 'editable'):
            self.editable = False
        if not hasattr(self, 'build_directory'):
            self.build_directory = None

    def finalize_options(self):
        if getattr(self, 'editable', False) and not getattr(self, 'build_directory', None):
            build_base = getattr(self, 'build_base', None)
            default_build_dir = Path(build_base) if build_base else Path('build') / 'develop'
            self.build_directory = str(default_build_dir)
        super().finalize_options()


package_name = 'sci_cam_image'

setup(
    name=package_name,
    version='0.3.0',
    packages=find_packages(include=[package_name, package_name + '.*']),
    package_data={package_name: ['config/*.yaml', 'launch/*.py']},
    data_files=[
        ('share/ament_index/resource_index/packages', ['resource/' + package_name]),
        ('share/' + package_name, ['package.xml']),
        ('share/' + package_name + '/launch', glob(package_name + '/launch/*.py')),
        ('share/' + package_name + '/config', glob(package_name + '/config/*.yaml')),
    ],
    python_requires='>=3.8',
    install_requires=[
        'setuptools',
        'numpy',
        'opencv-python-headless',
        'PyYAML',
    ],
    extras_require={'test': ['pytest']},
    zip_safe=True,
    maintainer='Sci Cam Maintainer',
    maintainer_email='maintainer@example.com',
    description='Science camera image publisher for ROS 2',
    license='Apache-2.0',
    cmdclass={'develop': DevelopCommand},
    entry_points={
        'console_scripts': [
            'sci_cam_node = sci_cam_image.nodes.sci_cam_node:main',
        ],
    },
)
