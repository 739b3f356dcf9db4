#!/usr/bin/env python

from setuptools import setup

setup(
    name="hivegate",
    version="0.1.0",
    description="HTTP gateway over a hive-partitioned object store with a local and a remote (S3) tier",
    packages=["hivegate", "hivegate.api"],
    include_package_data=True,
    zip_safe=False,
    keywords=["API", "storage", "hive", "S3"],
    classifiers=[
        "License :: OSI Approved :: MIT License",
        "Topic :: System :: Filesystems",
    ],
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.115.3",
        "pydantic>=2",
        "pydantic-settings",
        "python-dotenv",
        "class-doc",
        "aiobotocore",
        "types-aiobotocore-s3",
        "anyio",
        "uvicorn",
    ],
    extras_require={
        'dev': [
            'pytest',
            'httpx',
            'mypy',
            'flake8',
        ]
    },
    entry_points={
        'console_scripts': [
            'hivegate = hivegate.__main__:main'
        ]
    },
)
