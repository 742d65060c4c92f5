# setup.py
from setuptools import setup, find_packages

setup(
    name="site_audit",
    version="0.1.0",
    description="Асинхронный аудитор сайта SiteAudit: обход в ширину, статусы, alt-тексты, поиск",
    packages=find_packages(include=["site_audit", "site_audit.*"]),
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "click>=8.1",
        "pydantic>=2.5",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4,<9",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "site-audit=site_audit.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
