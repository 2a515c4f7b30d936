from setuptools import setup, find_packages

with open("README.rst", "r") as f:
    readme = f.read()

setup(
    name="liofuse",
    version="0.0.1",
    description="Lidar-inertial odometry front end built on IMU preintegration.",
    long_description=readme,
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    extras_require={"test": ["pytest"]},
    install_requires=[
        "numpy>=1.21.2",
        "scipy>=1.7.1",
        "matplotlib>=3.4.3",
        "pymlg @ git+https://github.com/decargroup/pymlg@main",
        "tqdm>=4.64.1",
    ],
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
