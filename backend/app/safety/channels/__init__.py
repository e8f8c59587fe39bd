"""
channels — Built-in backends for the pipeline's external collaborators.

    mailgun — message transport over HTTP (plus a simulation transport)
    device  — sampler, geolocation, notification, speech, haptics, notices

Transports never raise for upstream errors; they return a DeliveryAttempt.
"""
