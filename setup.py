from setuptools import setup, find_packages

setup(
    name='avalanche-installer',
    version='0.1.0',
    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    python_requires='>=3.10',
    install_requires=[
        'aiohttp',
        'aiofiles',
        'boto3',
        'platformdirs',
        'PyYAML',
        'rich',
    ],
    extras_require={
        'test': [
            'pytest<9.1',
            'pytest-asyncio',
            'pytest-mock',
        ],
    },
    entry_points={
        'console_scripts': [
            'avalanche-installer=avalanche_installer.cli:main',
        ],
    },
)
