from __future__ import annotations

from setuptools import find_packages, setup

from config.version import PROJECT_VERSION, PYTHON_REQUIRES_SPECIFIER

if __name__ == "__main__":
    setup(
        name="newsharvest-crawler",
        version=PROJECT_VERSION,
        python_requires=PYTHON_REQUIRES_SPECIFIER,
        packages=find_packages(include=["config", "newsharvest", "src", "src.*"]),
        py_modules=["main"],
        install_requires=[
            "beautifulsoup4>=4.12",
            "chardet>=5.0",
            "feedparser>=6.0",
            "httpx>=0.27",
            "loguru>=0.7",
            "lxml>=5.0",
            "playwright>=1.40",
            "pydantic>=2.5",
            "python-dateutil>=2.8",
            "python-dotenv>=1.0",
            "tomli>=2.0; python_version < '3.11'",
            "tomli_w>=1.0",
        ],
        extras_require={
            "test": [
                "hypothesis>=6.90",
                "pytest>=7.4",
            ],
        },
        entry_points={
            "console_scripts": [
                "newsharvest=main:main",
                "newsharvest-config=newsharvest.config_manager:main",
            ],
        },
    )
