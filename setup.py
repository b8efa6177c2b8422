"""
LFM Core Setup Script

Install with: pip install -e .
"""

from setuptools import setup, find_packages

setup(
    name='lfm-core',
    version='0.1.0',
    description='Legal Fighting Machine - grievance win-probability and case-similarity engine',
    author='LFM Team',
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        'lfm.weights': ['config/*.yaml'],
    },
    include_package_data=True,
    install_requires=[
        'structlog>=23.2.0',
        'pydantic>=2.5.0',
        'pyyaml>=6.0.1',
        'numpy>=1.26.0',
        'scipy>=1.11.0',
        'click>=8.1.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.21.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'lfm=lfm.cli:cli',
        ],
    },
    python_requires='>=3.11',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Legal Industry',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Artificial Intelligence',
        'Topic :: Legal',
    ],
)
