from setuptools import setup, find_packages

setup(name='coopio',
      version='0.1.0',
      description='A single-threaded cooperative runtime: executor, wakers, and an epoll reactor',
      classifiers=[
          "Programming Language :: Python :: 3",
          "License :: OSI Approved :: MIT License",
          "Operating System :: POSIX :: Linux",
      ],
      keywords='linux epoll async executor reactor',
      license='MIT',
      python_requires='>=3.7',
      install_requires=['outcome'],
      extras_require={'test': ['pytest']},
      packages=find_packages(include=['coopio', 'coopio.*']),
      entry_points={'console_scripts': ['coopio = coopio.__main__:main']},
)
