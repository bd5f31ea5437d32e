from setuptools import find_packages, setup

setup(
    name="sftp-stream",
    version="0.1.0",
    description="Stream-oriented remote file and directory handles over SFTP",
    author="Daniel T Sasser II",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "paramiko>=3.0.0",
    ],
    entry_points={
        "console_scripts": [
            "sftp-stream=sftp_stream.__main__:main",
        ],
    },
    python_requires=">=3.10",
    extras_require={
        "dev": [
            "pytest",
            "build",
            "twine",
        ],
    },
)
