"""
Default SMS templates seeded for every deployment.

Each key ships in English and Spanish.
"""

from typing import Any, Dict, List


DEFAULT_TEMPLATES: List[Dict[str, Any]] = [
    {
        "key": "appointment_confirmation",
        "language": "en",
        "content": (
            "Hi {{customer_name}}! Your {{service_type}} appointment is confirmed for "
            "{{date}} at {{time}}. Address: {{address}}. We'll call 30 minutes before "
            "arrival. Reply STOP to opt out."
        ),
        "variables": ["customer_name", "service_type", "date", "time", "address"],
        "category": "appointment",
    },
    {
        "key": "appointment_confirmation",
        "language": "es",
        "content": (
            "¡Hola {{customer_name}}! Su cita de {{service_type}} está confirmada para el "
            "{{date}} a las {{time}}. Dirección: {{address}}. Llamaremos 30 minutos antes "
            "de llegar. Responda STOP para cancelar."
        ),
        "variables": ["customer_name", "service_type", "date", "time", "address"],
        "category": "appointment",
    },
    {
        "key": "appointment_reminder",
        "language": "en",
        "content": (
            "Reminder: Your {{service_type}} appointment is tomorrow at {{time}}. "
            "Address: {{address}}. Please confirm by replying YES or reschedule by "
            "calling {{business_phone}}."
        ),
        "variables": ["service_type", "time", "address", "business_phone"],
        "category": "reminder",
    },
    {
        "key": "appointment_reminder",
        "language": "es",
        "content": (
            "Recordatorio: Su cita de {{service_type}} es mañana a las {{time}}. "
            "Dirección: {{address}}. Confirme respondiendo SÍ o reagende llamando al "
            "{{business_phone}}."
        ),
        "variables": ["service_type", "time", "address", "business_phone"],
        "category": "reminder",
    },
    {
        "key": "emergency_alert",
        "language": "en",
        "content": (
            "EMERGENCY ALERT: {{customer_name}} reported: {{issue_description}}. "
            "Address: {{address}}. Phone: {{customer_phone}}. Urgency: {{urgency_level}}. "
            "Please respond immediately."
        ),
        "variables": ["customer_name", "issue_description", "address", "customer_phone", "urgency_level"],
        "category": "emergency",
    },
    {
        "key": "emergency_alert",
        "language": "es",
        "content": (
            "ALERTA DE EMERGENCIA: {{customer_name}} reportó: {{issue_description}}. "
            "Dirección: {{address}}. Teléfono: {{customer_phone}}. Urgencia: {{urgency_level}}. "
            "Responda inmediatamente."
        ),
        "variables": ["customer_name", "issue_description", "address", "customer_phone", "urgency_level"],
        "category": "emergency",
    },
    {
        "key": "service_completion",
        "language": "en",
        "content": (
            "Thank you for choosing us! How was your {{service_type}} service today? "
            "Rate us 1-5 stars by replying with a number. For issues, call {{business_phone}}."
        ),
        "variables": ["service_type", "business_phone"],
        "category": "follow_up",
    },
    {
        "key": "service_completion",
        "language": "es",
        "content": (
            "¡Gracias por elegirnos! ¿Cómo fue su servicio de {{service_type}} hoy? "
            "Califíquenos de 1 a 5 estrellas respondiendo con un número. Para problemas, "
            "llame al {{business_phone}}."
        ),
        "variables": ["service_type", "business_phone"],
        "category": "follow_up",
    },
    {
        "key": "appointment_cancelled",
        "language": "en",
        "content": (
            "Your {{service_type}} appointment for {{date}} at {{time}} has been cancelled. "
            "To reschedule, call {{business_phone}} or visit our website."
        ),
        "variables": ["service_type", "date", "time", "business_phone"],
        "category": "appointment",
    },
    {
        "key": "appointment_cancelled",
        "language": "es",
        "content": (
            "Su cita de {{service_type}} para el {{date}} a las {{time}} ha sido cancelada. "
            "Para reagendar, llame al {{business_phone}} o visite nuestro sitio web."
        ),
        "variables": ["service_type", "date", "time", "business_phone"],
        "category": "appointment",
    },
    {
        "key": "no_show_followup",
        "language": "en",
        "content": (
            "We missed you at your {{service_type}} appointment today. Please call "
            "{{business_phone}} to reschedule. We're here to help!"
        ),
        "variables": ["service_type", "business_phone"],
        "category": "follow_up",
    },
    {
        "key": "no_show_followup",
        "language": "es",
        "content": (
            "Te extrañamos en tu cita de {{service_type}} hoy. Por favor llame al "
            "{{business_phone}} para reagendar. ¡Estamos aquí para ayudar!"
        ),
        "variables": ["service_type", "business_phone"],
        "category": "follow_up",
    },
    {
        "key": "welcome_message",
        "language": "en",
        "content": (
            "Welcome to {{business_name}}! We're excited to serve you. For appointments, "
            "call {{business_phone}} or visit our website. Reply STOP to opt out."
        ),
        "variables": ["business_name", "business_phone"],
        "category": "confirmation",
    },
    {
        "key": "welcome_message",
        "language": "es",
        "content": (
            "¡Bienvenido a {{business_name}}! Estamos emocionados de servirle. Para citas, "
            "llame al {{business_phone}} o visite nuestro sitio web. Responda STOP para cancelar."
        ),
        "variables": ["business_name", "business_phone"],
        "category": "confirmation",
    },
]
