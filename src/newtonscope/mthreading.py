# -*- coding: utf-8 -*-
import os
import functools
import concurrent.futures

import newtonscope as ns


class Multithreading_iterator():
    def __init__(self, iterable_attr, iter_kwargs="key", veto_parallel=False):
        """
Decorator class for multithreading looping of an instance-method.

Parameters:
-----------
iterable_attr : string
    getattr(instance, iterable_attr) is a Generator function (i.e.
    `yields` the successive values). It is called with the same arguments
    as the wrapped method.
iter_kwargs : string
    name of the wrapped method keyword-argument which will be filled with
    successive values yielded by the generator function pointed to by
    iterable_attr
veto_parallel : bool
    if True, defaults to normal iteration without multi-threading

Usage:
------
@Multithreading_iterator(iterable_attr, iter_kwargs)
def method(self, *args, iter_kwarg=None, **otherkwargs):
    (... CPU-intensive, GIL-releasing calculations ...)
    return None
"""
        self.iterable_attr = iterable_attr
        self.iter_kwargs = iter_kwargs
        self.veto_parallel = veto_parallel

    def __call__(self, method):
        @functools.wraps(method)
        def wrapper(instance, *args, **kwargs):
            parallel = (
                ns.settings.enable_multithreading and not self.veto_parallel
            )
            if parallel:
                self.call_multi_thread(instance, method, *args, **kwargs)
            else:
                self.call_std(instance, method, *args, **kwargs)
        return wrapper

    def keys(self, instance, *args, **kwargs):
        return getattr(instance, self.iterable_attr)(*args, **kwargs)

    def call_multi_thread(self, instance, method, *args, **kwargs):
        """ Parallel (multi-threading) loop """
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=os.cpu_count()
        ) as threadpool:
            full_args = (instance,) + args
            def get_kwargs(key):
                return {**kwargs, self.iter_kwargs: key}

            futures = [
                threadpool.submit(
                    method,
                    *full_args,
                    **get_kwargs(key)
                )
                for key in self.keys(instance, *args, **kwargs)
            ]
            for fut in concurrent.futures.as_completed(futures):
                fut.result()

    def call_std(self, instance, method, *args, **kwargs):
        """ Standard loop """
        full_args = (instance,) + args
        for key in self.keys(instance, *args, **kwargs):
            method(*full_args, **{**kwargs, self.iter_kwargs: key})
