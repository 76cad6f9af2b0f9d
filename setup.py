from setuptools import setup, find_packages

setup(
    name="aurbuild",
    version="0.1.0",
    description="Resolve, build and install AUR packages with their dependencies.",
    license="Apache-2.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "rich>=13.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "aurbuild=aurbuild.modules.cli:main",
        ],
    },
)
