"""
Component modules for the provisioning plan.

Each component is a separate module that contributes the steps for one part
of the stack.
"""
