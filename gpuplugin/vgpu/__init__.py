"""PCI configuration space reading and discovery of vGPU devices."""