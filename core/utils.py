from django.http import HttpResponse
from django.shortcuts import render, redirect


def htmx_render(request, full_template, partial_template, context=None):
    """
    Render full template for regular requests, partial for HTMX requests.
    Progressive enhancement: works with or without JavaScript.
    """
    context = context or {}
    template = partial_template if request.htmx else full_template
    return render(request, template, context)


def htmx_refresh_response(request, fallback_url):
    """Ask HTMX to reload the page; plain requests are redirected."""
    if request.htmx:
        response = HttpResponse(status=200)
        response['HX-Refresh'] = 'true'
        return response
    return redirect(fallback_url)


def breadcrumbs(*items):
    """Home crumb followed by (label, url) pairs; the last item has no url."""
    crumbs = [{'label': 'Home', 'url': '/', 'icon': 'fa-solid fa-home'}]
    for label, url in items:
        crumb = {'label': label}
        if url:
            crumb['url'] = url
        crumbs.append(crumb)
    return crumbs
