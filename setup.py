from setuptools import find_packages, setup


setup(
    name="ntfsmend",
    version="1.0.0",
    description="Checks, repairs and remounts NTFS volumes listed in fstab",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.11",
    install_requires=['zenlib>=1.2.0'],
    entry_points={
        "console_scripts": [
            "ntfsmend = ntfsmend.main:main",
            "ntfsmend-install = ntfsmend.installer:main",
        ]
    }
)
