from setuptools import find_packages
from setuptools import setup


version = '0.1.0'


setup_requires = []

with open('requirements.txt') as f:
    install_requires = []
    for line in f:
        req = line.split('#')[0].strip()
        if req:
            install_requires.append(req)

test_install_requires = ['pytest']

extra_all_requires = test_install_requires


setup(
    name='scikit-motion',
    version=version,
    description='Profile driven robot motion planning in Python',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    license='MIT',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Natural Language :: English',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Programming Language :: Python :: 3.13',
        'Programming Language :: Python :: Implementation :: CPython',
    ],
    packages=find_packages(include=['skmotion', 'skmotion.*']),
    zip_safe=False,
    setup_requires=setup_requires,
    install_requires=install_requires,
    extras_require={
        'test': test_install_requires,
        'all': extra_all_requires,
    },
)
