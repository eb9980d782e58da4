from setuptools import setup, find_packages

setup(
    name="waypoint",
    version="0.1.0",
    description="Client-side navigation engine for Metafor-style single-page applications",
    author="Metafor Team",
    packages=find_packages(include=["waypoint", "waypoint.*"]),
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=[],
    extras_require={
        "test": [
            "pytest",
        ],
    },
)
