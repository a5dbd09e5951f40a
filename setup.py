from setuptools import setup, find_packages

setup(
    name="laundry-watchdog",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "requests",
        "openpyxl",
        "psycopg2-binary",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        'console_scripts': [
            'laundry-watchdog=laundry_watchdog.main:main',
        ],
    },
)
