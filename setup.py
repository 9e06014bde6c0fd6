from __future__ import annotations

from setuptools import find_packages, setup  # type: ignore


setup(
    name="cinreg",
    version="0.1.0",
    description="Real-time citizen identifier registry over a subscribable document store",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=[
        "fastapi>=0.110",
        "uvicorn>=0.29",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8",
        ],
    },
)
