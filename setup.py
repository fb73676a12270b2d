from setuptools import setup, find_packages


setup(
    name="packrat",
    version="0.1",
    packages=find_packages(exclude=["scripts"]),
    description="A minimal streaming archive format with per-entry Brotli compression.",
    author="vercingetorx",
    install_requires=[
        "Brotli>=1.1.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "packrat=packrat.cli:main",
        ]
    },
)
