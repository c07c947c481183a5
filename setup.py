"""
crudtable setup.py — Package configuration and CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="crudtable",
    version="1.0.0",
    description="crudtable — Generic CRUD data table over HTTP endpoints",
    packages=find_packages(include=["crudtable", "crudtable.*"]),
    py_modules=["rxconfig"],
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "crudtable=crudtable.cli:main",
        ],
    },
    install_requires=[
        "reflex>=0.6.0",
        "pydantic>=2.5",
        "pyyaml>=6.0",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
)
