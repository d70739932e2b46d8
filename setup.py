from setuptools import setup, find_packages

setup(
    name="record-batcher",
    version="0.1.0",
    description="Bulk record insertion in size-bounded batches and lazy, filtering recordsets",
    packages=find_packages("src"),
    package_dir={"": "src"},
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=[
        'click>=8.1',
        'rich>=13.0',
        'psycopg2-binary>=2.9',
        'trino>=0.320',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'record-batcher=record_batcher.cli:cli',
        ],
    },
)
