from setuptools import setup

with open('README.rst') as f:
    readme = f.read()

setup(
    name='adb_host',
    version='0.1.0',
    description='A Python client for the adb server with shell and FileSync functionality.',
    long_description=readme,
    keywords=['adb', 'android'],
    author='Jeff Irion',
    author_email='jefflirion@users.noreply.github.com',
    packages=['adb_host', 'adb_host.transport'],
    install_requires=['tqdm'],
    tests_require=['pytest'],
    extras_require = {'test': ['pytest']},
    classifiers=['Operating System :: OS Independent',
                 'License :: OSI Approved :: Apache Software License',
                 'Programming Language :: Python :: 3'],
    test_suite='tests'
)
