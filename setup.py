from __future__ import annotations

from setuptools import setup

setup(
    name="mesh-fairing",
    version="0.1.0",
    description="Variational fairing of triangle mesh regions with harmonic, "
    "biharmonic and triharmonic energies.",
    python_requires=">=3.10",
    packages=["core", "geometry", "parameters", "runtime", "mesh_fairing"],
    py_modules=["main"],
    install_requires=[
        "numpy",
        "scipy",
        "PyYAML",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "mesh-fair=main:main",
        ],
    },
)
