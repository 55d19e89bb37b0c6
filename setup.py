from setuptools import find_packages, setup


setup(
    name="pairscan",
    version="0.1.0",
    description="Base-chain liquidity pair scanner with volume-spike signals",
    packages=find_packages(include=["pairscan", "pairscan.*"]),
    python_requires=">=3.10",
    install_requires=[
        "aiohttp>=3.9",
        "cachetools>=5.3",
        "pydantic>=2.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": ["pairscan=pairscan.cli:main"],
    },
)
