from __future__ import annotations

from setuptools import find_packages, setup

from config.version import PROJECT_VERSION, PYTHON_REQUIRES_SPECIFIER

if __name__ == "__main__":
    setup(
        name="newsdesk-crawler",
        version=PROJECT_VERSION,
        python_requires=PYTHON_REQUIRES_SPECIFIER,
        packages=find_packages(include=["config", "newsdesk", "src", "src.*"]),
        py_modules=["main"],
        install_requires=[
            "apscheduler>=3.10,<4",
            "beautifulsoup4>=4.12",
            "fastapi>=0.110",
            "feedparser>=6.0",
            "httpx>=0.27",
            "loguru>=0.7",
            "pydantic>=2.5",
            "python-dateutil>=2.8",
            "python-dotenv>=1.0",
            "requests>=2.31",
            "sqlalchemy>=2.0",
            "tomli>=2.0; python_version < '3.11'",
            "tomli-w>=1.0",
        ],
        extras_require={
            "test": [
                "anyio>=4.0",
                "hypothesis>=6.90",
                "pytest>=7.4",
            ],
        },
        entry_points={
            "console_scripts": [
                "newsdesk=main:main",
                "newsdesk-config=newsdesk.config_manager:main",
            ],
        },
    )
