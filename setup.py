"""
OpsReport setup.py — Package configuration and CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="opsreport",
    version="1.0.0",
    description="OpsReport — operational progress reports dashboard",
    packages=find_packages(include=["opsreport", "opsreport.*"]),
    py_modules=["rxconfig"],
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "opsreport=opsreport.cli:main",
        ],
    },
    install_requires=[
        "reflex>=0.6.0",
        "sqlalchemy>=2.0",
        "psycopg2-binary>=2.9",
        "pydantic>=2.5",
        "bcrypt>=4.1",
        "pyyaml>=6.0",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
)
